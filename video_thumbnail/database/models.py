from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Integer, String, Text
from sqlalchemy.sql import func

from .connection import Base


class Media(Base):
    __tablename__ = "media"

    media_id = Column(String, primary_key=True)
    storage_id = Column(String, nullable=False, unique=True, index=True)
    filename = Column(String, nullable=False)
    media_type = Column(String, nullable=False, index=True)  # MIME type
    duration = Column(Float)  # Seconds, cached after first successful probe
    file_size = Column(Integer)  # Bytes
    has_thumbnails = Column(Boolean, nullable=False, default=False)
    data = Column(JSON)  # videothumbnail_frame, videothumbnail_timestamp
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class ThumbnailJob(Base):
    """SQLAlchemy entity for batch thumbnail regeneration jobs."""

    __tablename__ = "thumbnail_jobs"

    job_id = Column(String, primary_key=True)
    status = Column(String, nullable=False, default="starting", index=True)
    args = Column(JSON)  # {"frame_position": float}
    retry_count = Column(Integer, nullable=False, default=0)
    max_retries = Column(Integer, nullable=False, default=3)
    checkpoint = Column(JSON)  # {"last_processed_index", "last_progress"}
    recovery_attempts = Column(Integer, nullable=False, default=0)
    progress = Column(Float, nullable=False, default=0.0)  # 0-100
    last_processed_index = Column(Integer, nullable=False, default=-1)
    processed_count = Column(Integer, nullable=False, default=0)
    failed_count = Column(Integer, nullable=False, default=0)
    stop_requested = Column(Boolean, nullable=False, default=False)
    queue_job_id = Column(String)  # arq job id of the latest enqueue
    error = Column(Text)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    completed_at = Column(DateTime)
