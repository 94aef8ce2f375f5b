import os

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

# Database URL - defaults to SQLite in data directory
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./data/video_thumbnail.db")


def create_db_engine(database_url: str):
    """Create database engine with appropriate configuration for the database type."""
    if database_url.startswith("postgresql"):
        return create_engine(
            database_url,
            pool_size=5,
            max_overflow=5,
            pool_pre_ping=True,  # Verify connections before use
            pool_recycle=300,  # Recycle connections after 5 minutes
        )
    elif database_url.startswith("sqlite"):
        # SQLite configuration - disable thread check for multi-threaded access
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
        )
    else:
        return create_engine(database_url)


# Create engine
engine = create_db_engine(DATABASE_URL)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


def get_db():
    """Yield a database session and close it afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
