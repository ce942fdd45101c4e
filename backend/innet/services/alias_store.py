"""
Alias stores: where slug -> token mappings live.

The slug column's uniqueness is the only concurrency guarantee the registry
relies on; stores report a taken slug as ``SlugConflictError`` and any other
failure as ``StoreUnavailableError``.
"""
import hashlib
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from innet.core.errors import SlugConflictError, StoreUnavailableError
from innet.core.logging_config import LoggingConfig
from innet.models.share_link import ShareLink
from innet.utils.datetime_utils import ensure_utc, utc_now

logger = LoggingConfig.get_logger(__name__)


@dataclass(frozen=True)
class AliasRecord:
    """One slug -> token mapping"""
    slug: str
    token: str
    expires_at: datetime

    def is_active(self, now: datetime) -> bool:
        return ensure_utc(self.expires_at) > ensure_utc(now)


def token_digest(token: str) -> str:
    """sha256 hex digest used to look up existing aliases by token"""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class AliasStore(ABC):
    """Persistence contract of the alias registry"""

    @abstractmethod
    def find_active_by_token(self, token: str, now: datetime) -> Optional[AliasRecord]:
        """Latest-expiring unexpired alias for this token, if any"""

    @abstractmethod
    def get(self, slug: str) -> Optional[AliasRecord]:
        """Alias by slug regardless of expiry"""

    @abstractmethod
    def insert(self, record: AliasRecord) -> None:
        """
        Insert a new alias.

        Raises:
            SlugConflictError: slug already exists
            StoreUnavailableError: store failed
        """

    @abstractmethod
    def delete_expired(self, now: datetime) -> int:
        """Delete aliases whose expiry is at or before ``now``; returns count"""

    @abstractmethod
    def count_by_state(self, now: datetime) -> Dict[str, int]:
        """Number of ``active`` and ``expired`` aliases at ``now``"""


class SqlAlchemyAliasStore(AliasStore):
    """Alias store on the ``share_links`` table"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _record(row: ShareLink) -> AliasRecord:
        return AliasRecord(slug=row.slug, token=row.token, expires_at=ensure_utc(row.expires_at))

    def find_active_by_token(self, token: str, now: datetime) -> Optional[AliasRecord]:
        try:
            row = (
                self.db.query(ShareLink)
                .filter(ShareLink.token_hash == token_digest(token))
                .filter(ShareLink.expires_at > now)
                .order_by(ShareLink.expires_at.desc())
                .first()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailableError("lookup", str(e)) from e
        # Guard against a hash collision
        if row is None or row.token != token:
            return None
        return self._record(row)

    def get(self, slug: str) -> Optional[AliasRecord]:
        try:
            row = self.db.query(ShareLink).filter(ShareLink.slug == slug).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailableError("get", str(e)) from e
        return self._record(row) if row is not None else None

    def insert(self, record: AliasRecord) -> None:
        # Plain INSERT so a taken slug always surfaces as the database's unique violation
        statement = insert(ShareLink).values(
            slug=record.slug,
            token=record.token,
            token_hash=token_digest(record.token),
            expires_at=record.expires_at,
            created_at=utc_now(),
        )
        try:
            self.db.execute(statement)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.debug(f"Unique violation on slug {record.slug}", extra={"slug": record.slug})
            raise SlugConflictError(record.slug) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailableError("insert", str(e)) from e

    def delete_expired(self, now: datetime) -> int:
        try:
            deleted = (
                self.db.query(ShareLink)
                .filter(ShareLink.expires_at <= now)
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailableError("delete_expired", str(e)) from e
        return deleted

    def count_by_state(self, now: datetime) -> Dict[str, int]:
        try:
            active = self.db.query(ShareLink).filter(ShareLink.expires_at > now).count()
            expired = self.db.query(ShareLink).filter(ShareLink.expires_at <= now).count()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailableError("count", str(e)) from e
        return {"active": active, "expired": expired}


class InMemoryAliasStore(AliasStore):
    """Process-local store for tests and single-process tooling"""

    def __init__(self):
        self._records: Dict[str, AliasRecord] = {}
        self._lock = threading.Lock()

    def find_active_by_token(self, token: str, now: datetime) -> Optional[AliasRecord]:
        with self._lock:
            active = [r for r in self._records.values() if r.token == token and r.is_active(now)]
        if not active:
            return None
        return max(active, key=lambda r: ensure_utc(r.expires_at))

    def get(self, slug: str) -> Optional[AliasRecord]:
        with self._lock:
            return self._records.get(slug)

    def insert(self, record: AliasRecord) -> None:
        with self._lock:
            if record.slug in self._records:
                raise SlugConflictError(record.slug)
            self._records[record.slug] = record

    def delete_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [slug for slug, r in self._records.items() if not r.is_active(now)]
            for slug in expired:
                del self._records[slug]
        return len(expired)

    def count_by_state(self, now: datetime) -> Dict[str, int]:
        with self._lock:
            active = sum(1 for r in self._records.values() if r.is_active(now))
            total = len(self._records)
        return {"active": active, "expired": total - active}

    def __len__(self) -> int:
        return len(self._records)
