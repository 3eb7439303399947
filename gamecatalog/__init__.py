"""HTTP API for a video game catalogue backed by SQLite and an S3-compatible store."""

__version__ = "0.1.0"