"""
Error taxonomy for share tokens and short share links.

Decode errors tell the scanning user what went wrong (rescan, different code,
expired link), so each kind carries its own message. Sanitization never
raises: oversized or malformed fields are corrected in place.
"""
from typing import Any, Dict, Optional


class ShareError(Exception):
    """Base exception for all share-related errors"""

    kind = "share_error"
    default_message = "Share operation failed"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# Decode path
# =============================================================================

class ShareDecodeError(ShareError):
    """Raised when a scanned token cannot be turned into a payload"""

    kind = "decode_error"


class FormatError(ShareDecodeError):
    """The input does not start with the share token prefix"""

    kind = "format"
    default_message = "Unsupported QR code format"


class DecodeError(ShareDecodeError):
    """The token body is not valid base64url-encoded JSON"""

    kind = "decode"
    default_message = "Could not read the QR code data"


class VersionError(ShareDecodeError):
    """The payload was produced by an unsupported protocol version"""

    kind = "version"
    default_message = "This QR code version is not supported"


# =============================================================================
# Alias registry
# =============================================================================

class ValidationError(ShareError):
    """A short link was requested for something that is not a share token"""

    kind = "validation"
    default_message = "Invalid token for a short link"


class NotFound(ShareError):
    """Slug is unknown or expired; both look the same to the caller"""

    kind = "not_found"
    default_message = "This QR code is no longer valid"


class ServiceUnavailable(ShareError):
    """Short links cannot be issued or read right now"""

    kind = "unavailable"
    default_message = "Short links are temporarily unavailable. Try again later."


# =============================================================================
# Alias store signals
# =============================================================================

class AliasStoreError(Exception):
    """Base exception for alias store failures"""
    pass


class SlugConflictError(AliasStoreError):
    """Insert violated the unique slug constraint"""

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"Slug already taken: {slug}")


class StoreUnavailableError(AliasStoreError):
    """Backing store could not be reached or failed the operation"""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Alias store {operation} failed: {reason}")
