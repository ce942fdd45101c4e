"""
Short share link model: an opaque slug standing in for a full share token
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, String, Text

from innet.core.database import Base


class ShareLink(Base):
    """Slug -> token mapping with a hard expiry"""
    __tablename__ = "share_links"

    slug = Column(String(32), primary_key=True)  # unique constraint backs collision-safe minting
    token = Column(Text, nullable=False)
    token_hash = Column(String(64), nullable=False)  # sha256 hex; tokens can be several KB
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    __table_args__ = (
        Index("ix_share_links_token_hash", "token_hash"),
        Index("ix_share_links_expires_at", "expires_at"),
    )

    def __repr__(self):
        return f"<ShareLink(slug={self.slug}, expires_at={self.expires_at})>"
