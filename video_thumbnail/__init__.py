"""Video thumbnail extraction and thumbnail consistency tracking."""

__version__ = "0.4.0"
