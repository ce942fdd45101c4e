"""
Long and short share link shapes.

    long:  <origin>/share?token=<percent-encoded token>
    short: <origin>/share/<slug>
"""
from typing import Optional
from urllib.parse import quote

from innet.core.config import get_settings

SHARE_PATH = "/share"
TOKEN_QUERY_PARAM = "token"


def _origin(origin: Optional[str]) -> str:
    value = origin if origin is not None else get_settings().public_origin
    return value.strip().rstrip("/")


def build_share_url(token: str, origin: Optional[str] = None) -> str:
    """Long link carrying the whole token in the query string"""
    if not token:
        return ""
    base = _origin(origin)
    encoded = quote(token, safe="")
    if not base:
        return token
    return f"{base}{SHARE_PATH}?{TOKEN_QUERY_PARAM}={encoded}"


def build_share_alias_url(slug: str, origin: Optional[str] = None) -> str:
    """Short link pointing at an alias slug"""
    slug = (slug or "").strip()
    if not slug:
        return ""
    return f"{_origin(origin)}{SHARE_PATH}/{quote(slug, safe='')}"
