"""
Finds a share token inside whatever a scanner or a clicked link hands us.

The same token travels as raw QR text, as a percent-encoded string, inside a
long ``/share?token=`` link and behind a short ``/share/<slug>`` link. Lookup
order:

1. verbatim prefix match
2. percent-decode, then prefix match
3. URL query parameter ``token``
4. URL path ``/share/<slug>`` (resolved through the alias registry when a
   resolver is supplied)
5. ``token=`` fragment or prefix anywhere in the text

None of the steps raise; unusable input yields ``None``. ``locate_token``
reports errors from the optional alias resolver (unknown or expired slug) as
a tagged result so the caller can tell the user the link expired.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import unquote, urlsplit

from innet.components.share_codec import SHARE_PREFIX
from innet.components.share_links import SHARE_PATH, TOKEN_QUERY_PARAM
from innet.core.errors import ShareError
from innet.core.logging_config import LoggingConfig

logger = LoggingConfig.get_logger(__name__)

AliasResolver = Callable[[str], str]

_BODY_CHARS = r"[A-Za-z0-9_\-=]"
_TOKEN_AT_START = re.compile(re.escape(SHARE_PREFIX) + _BODY_CHARS + "*")
_BARE_BODY = re.compile(_BODY_CHARS + "+")
_TOKEN_FRAGMENT = re.compile(r"[?&]" + TOKEN_QUERY_PARAM + r"=([^&\s#]+)")
_SLUG_PATH_PREFIX = SHARE_PATH + "/"


def percent_decode(value: str) -> str:
    """Decode %XX escapes; malformed escapes fall back to the raw string"""
    try:
        return unquote(value, errors="strict")
    except UnicodeDecodeError:
        return value


def _take_token(text: str) -> Optional[str]:
    """Prefix plus the base64url run that follows it, wherever it occurs"""
    index = text.find(SHARE_PREFIX)
    if index < 0:
        return None
    return _TOKEN_AT_START.match(text, index).group(0)


def _candidate(raw: str) -> Optional[str]:
    """Normalise a query/path value: decoded token, or a bare body given the prefix"""
    value = percent_decode(raw.strip()).strip()
    if not value:
        return None
    token = _take_token(value)
    if token:
        return token
    if _BARE_BODY.fullmatch(value):
        return SHARE_PREFIX + value
    return None


def _looks_like_url(text: str) -> bool:
    lowered = text[:8].lower()
    return lowered.startswith("http://") or lowered.startswith("https://")


def _query_token(query: str) -> Optional[str]:
    for pair in query.split("&"):
        key, _, value = pair.partition("=")
        if percent_decode(key) == TOKEN_QUERY_PARAM and value:
            token = _candidate(value)
            if token:
                return token
    return None


def _path_segment(path: str) -> Optional[str]:
    if not path.startswith("/"):
        path = "/" + path
    if not path.startswith(_SLUG_PATH_PREFIX):
        return None
    segment = path[len(_SLUG_PATH_PREFIX):].strip("/").split("/", 1)[0]
    segment = percent_decode(segment).strip()
    return segment or None


def extract_alias_slug(raw_input: Any) -> Optional[str]:
    """
    Slug of a short ``/share/<slug>`` link, or None.

    A path segment that is itself a share token is not a slug.
    """
    if not isinstance(raw_input, str):
        return None
    text = raw_input.strip()
    if not _looks_like_url(text):
        return None
    try:
        parts = urlsplit(text)
    except ValueError:
        return None
    if _query_token(parts.query):
        return None
    segment = _path_segment(parts.path)
    if not segment or SHARE_PREFIX in segment:
        return None
    return segment


def _locate(raw_input: Any, resolve_alias: Optional[AliasResolver]) -> Optional[str]:
    if not isinstance(raw_input, str):
        return None
    text = raw_input.strip()
    if not text:
        return None

    if text.startswith(SHARE_PREFIX):
        return _TOKEN_AT_START.match(text).group(0)

    decoded = percent_decode(text).strip()
    if decoded.startswith(SHARE_PREFIX):
        return _TOKEN_AT_START.match(decoded).group(0)

    if _looks_like_url(text):
        try:
            parts = urlsplit(text)
        except ValueError:
            parts = None
        if parts is not None:
            token = _query_token(parts.query)
            if token:
                return token

            segment = _path_segment(parts.path)
            if segment:
                token = _take_token(segment)
                if token:
                    return token
                if resolve_alias is not None:
                    logger.debug("Resolving short share link", extra={"slug": segment})
                    return resolve_alias(segment)
                return None

    fragment = _TOKEN_FRAGMENT.search(text)
    if fragment:
        token = _candidate(fragment.group(1))
        if token:
            return token

    return _take_token(text) or _take_token(decoded)


@dataclass(frozen=True)
class TokenLocation:
    """Tagged lookup outcome: a token, nothing found, or the short link's resolver error"""
    token: Optional[str] = None
    error: Optional[ShareError] = None

    @property
    def ok(self) -> bool:
        return self.token is not None

    @property
    def kind(self) -> str:
        if self.token is not None:
            return "ok"
        return self.error.kind if self.error is not None else "missing"


def locate_token(raw_input: Any, resolve_alias: Optional[AliasResolver] = None) -> TokenLocation:
    """
    Extract a share token from scan text, a percent-encoded string or a link.

    Args:
        raw_input: Text produced by the camera or a pasted/clicked link
        resolve_alias: Optional callable turning a short-link slug into its
            token (e.g. ``ShareLinkService(...).resolve_token``)

    Returns:
        TokenLocation with the token (prefix included), or with the
        ``ShareError`` the resolver raised for a short link (unknown or
        expired slug, registry unavailable), or with neither
    """
    try:
        return TokenLocation(token=_locate(raw_input, resolve_alias))
    except ShareError as e:
        logger.info(f"Short share link not resolved: {e.kind}", extra={"kind": e.kind})
        return TokenLocation(error=e)


def extract_token(raw_input: Any, resolve_alias: Optional[AliasResolver] = None) -> Optional[str]:
    """Token found in ``raw_input`` or None; use ``locate_token`` to learn why a short link failed"""
    return locate_token(raw_input, resolve_alias).token
