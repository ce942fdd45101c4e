"""
Alias Registry: exchanges share tokens for short random slugs.

Minting is idempotent while an alias is active (the same token gets the same
slug back), collision-safe through the store's unique slug constraint with a
bounded number of retries, and every alias carries a hard expiry that is
checked lazily on resolve.
"""
import secrets
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from innet.components.share_codec import SHARE_PREFIX
from innet.core.config import get_settings
from innet.core.errors import (
    NotFound,
    ServiceUnavailable,
    SlugConflictError,
    StoreUnavailableError,
    ValidationError,
)
from innet.core.logging_config import LoggingConfig
from innet.core.metrics import (
    share_link_mints_total,
    share_link_resolutions_total,
    share_link_slug_conflicts_total,
)
from innet.services.alias_store import AliasRecord, AliasStore, SqlAlchemyAliasStore
from innet.utils.datetime_utils import ensure_utc, utc_now

logger = LoggingConfig.get_logger(__name__)

# No 0/O/1/I/l: slugs are read aloud and typed by hand
SLUG_ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
DEFAULT_SLUG_LENGTH = 9
DEFAULT_TTL = timedelta(hours=12)
DEFAULT_MAX_ATTEMPTS = 6


def generate_slug(length: int = DEFAULT_SLUG_LENGTH) -> str:
    """Random slug from a CSPRNG"""
    return "".join(secrets.choice(SLUG_ALPHABET) for _ in range(length))


class ShareLinkService:
    """Mint and resolve short share links"""

    def __init__(
        self,
        store: AliasStore,
        ttl: timedelta = DEFAULT_TTL,
        slug_length: int = DEFAULT_SLUG_LENGTH,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], datetime] = utc_now,
        slug_factory: Optional[Callable[[int], str]] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.ttl = ttl
        self.slug_length = slug_length
        self.max_attempts = max_attempts
        self.clock = clock
        self.slug_factory = slug_factory or generate_slug

    @classmethod
    def from_settings(cls, db: Session, **overrides) -> "ShareLinkService":
        """Service on the SQL store configured from application settings"""
        settings = get_settings()
        params = {
            "ttl": timedelta(hours=settings.share_link_ttl_hours),
            "slug_length": settings.share_link_slug_length,
            "max_attempts": settings.share_link_max_attempts,
        }
        params.update(overrides)
        return cls(SqlAlchemyAliasStore(db), **params)

    def _now(self) -> datetime:
        return ensure_utc(self.clock())

    def mint(self, token: str) -> AliasRecord:
        """
        Issue (or reuse) a short slug for a share token.

        Raises:
            ValidationError: token is not a share token
            ServiceUnavailable: no free slug within the retry bound, or the
                store failed
        """
        token = token.strip() if isinstance(token, str) else ""
        if not token.startswith(SHARE_PREFIX):
            share_link_mints_total.labels(result="rejected").inc()
            raise ValidationError()

        now = self._now()
        try:
            existing = self.store.find_active_by_token(token, now)
        except StoreUnavailableError as e:
            share_link_mints_total.labels(result="failed").inc()
            logger.error(f"Short link lookup failed: {e}", extra={"operation": e.operation})
            raise ServiceUnavailable(details={"reason": e.reason}) from e

        if existing is not None:
            share_link_mints_total.labels(result="reused").inc()
            logger.debug("Reusing active short link", extra={"slug": existing.slug})
            return existing

        expires_at = now + self.ttl
        for attempt in range(1, self.max_attempts + 1):
            record = AliasRecord(slug=self.slug_factory(self.slug_length), token=token, expires_at=expires_at)
            try:
                self.store.insert(record)
            except SlugConflictError:
                share_link_slug_conflicts_total.inc()
                logger.warning(
                    f"Slug collision on attempt {attempt}/{self.max_attempts}",
                    extra={"slug": record.slug, "attempt": attempt}
                )
                continue
            except StoreUnavailableError as e:
                share_link_mints_total.labels(result="failed").inc()
                logger.error(f"Short link insert failed: {e}", extra={"operation": e.operation})
                raise ServiceUnavailable(details={"reason": e.reason}) from e

            share_link_mints_total.labels(result="created").inc()
            logger.info(
                f"Short link created: {record.slug}",
                extra={"slug": record.slug, "expires_at": record.expires_at.isoformat(), "attempt": attempt}
            )
            return record

        share_link_mints_total.labels(result="failed").inc()
        logger.error(
            f"Could not find a free slug after {self.max_attempts} attempts",
            extra={"max_attempts": self.max_attempts}
        )
        raise ServiceUnavailable(
            "Could not create a short link. Try again later.",
            details={"attempts": self.max_attempts},
        )

    def resolve(self, slug: str) -> AliasRecord:
        """
        Look up an active alias.

        Unknown and expired slugs raise the same ``NotFound``.
        """
        slug = slug.strip() if isinstance(slug, str) else ""
        if not slug:
            share_link_resolutions_total.labels(result="not_found").inc()
            raise NotFound()

        try:
            record = self.store.get(slug)
        except StoreUnavailableError as e:
            share_link_resolutions_total.labels(result="failed").inc()
            logger.error(f"Short link lookup failed: {e}", extra={"operation": e.operation})
            raise ServiceUnavailable(details={"reason": e.reason}) from e

        if record is None or not record.is_active(self._now()):
            share_link_resolutions_total.labels(result="not_found").inc()
            logger.info(
                "Short link not found or expired",
                extra={"slug": slug, "known": record is not None}
            )
            raise NotFound()

        share_link_resolutions_total.labels(result="found").inc()
        return record

    def resolve_token(self, slug: str) -> str:
        """Resolver callable for ``extract_token(raw, resolve_alias=...)``"""
        return self.resolve(slug).token

    def purge_expired(self) -> int:
        """Delete expired aliases; resolve already ignores them, this only reclaims space"""
        try:
            deleted = self.store.delete_expired(self._now())
        except StoreUnavailableError as e:
            raise ServiceUnavailable(details={"reason": e.reason}) from e
        logger.info(f"Purged {deleted} expired short links", extra={"deleted": deleted})
        return deleted
