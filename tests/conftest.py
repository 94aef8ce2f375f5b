"""Shared fixtures: temporary SQLite database and small JPEG frames."""

import os
import tempfile

import pytest
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from video_thumbnail.database import models  # noqa: F401
from video_thumbnail.database.connection import Base


@pytest.fixture
def db_session():
    """Session bound to a fresh SQLite database with all tables created."""
    with tempfile.TemporaryDirectory() as temp_dir:
        db_path = os.path.join(temp_dir, "test.db")
        engine = create_engine(
            f"sqlite:///{db_path}", connect_args={"check_same_thread": False}
        )
        Base.metadata.create_all(engine)
        session = sessionmaker(bind=engine)()
        try:
            yield session
        finally:
            session.close()
            engine.dispose()


@pytest.fixture
def make_jpeg():
    """Write a solid-colour JPEG and return its path."""

    def _make(path, size=(320, 180), color=(200, 40, 40)):
        Image.new("RGB", size, color).save(path, "JPEG")
        return str(path)

    return _make
