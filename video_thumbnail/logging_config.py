"""Structured JSON logging for worker and CLI processes."""

import logging
import logging.config

from pythonjsonlogger import jsonlogger

SERVICE_NAME = "video-thumbnail"


# A custom formatter to produce JSON logs
class JsonFormatter(jsonlogger.JsonFormatter):
    service = SERVICE_NAME

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record["level"] = record.levelname.lower()
        log_record["name"] = record.name
        log_record["service"] = self.service


def setup_logging(service: str = SERVICE_NAME, level: str = "INFO"):
    """
    Set up structured JSON logging for the whole process.
    Configures the root logger so module loggers inherit the JSON handler, and
    routes the Alembic and arq loggers through the same handler.
    """
    JsonFormatter.service = service

    log_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": JsonFormatter,
                "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
            },
        },
        "handlers": {
            "json_handler": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {
            "handlers": ["json_handler"],
            "level": level,
        },
        "loggers": {
            "alembic": {
                "handlers": ["json_handler"],
                "level": "INFO",
                "propagate": False,
            },
            "arq": {
                "handlers": ["json_handler"],
                "level": "INFO",
                "propagate": False,
            },
            "arq.worker": {
                "handlers": ["json_handler"],
                "level": "DEBUG",
                "propagate": False,
            },
        },
    }
    logging.config.dictConfig(log_config)
