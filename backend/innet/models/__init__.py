"""
SQLAlchemy models
"""
from innet.core.database import Base
from innet.models.share_link import ShareLink  # noqa: F401

__all__ = ["Base", "ShareLink"]
