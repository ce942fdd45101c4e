"""
Payload codec for fact-share tokens.

Token layout: ``innet-share:`` + unpadded base64url of the UTF-8 canonical JSON
of a sanitized :class:`SharePayload`.

Sanitization runs on both sides of the wire: ``encode_share_token`` sanitizes
what the owner selected, ``parse_share_token`` sanitizes whatever came out of
the scan. Sanitizing never raises; it truncates, drops or regenerates fields so
the result always satisfies the payload invariants.
"""

from __future__ import annotations

import base64
import binascii
import json
import math
import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional, Union

from innet.components.contracts import (
    AVATAR_URL_LIMIT,
    DEFAULT_GROUP_COLOR,
    DEFAULT_GROUP_NAME,
    DEFAULT_OWNER_NAME,
    FACT_TEXT_LIMIT,
    ID_LIMIT,
    NAME_LIMIT,
    ShareFact,
    ShareGroup,
    ShareOwner,
    SharePayload,
)
from innet.core.errors import DecodeError, FormatError, ShareDecodeError, VersionError
from innet.core.logging_config import LoggingConfig
from innet.core.metrics import (
    share_token_length_chars,
    share_tokens_decoded_total,
    share_tokens_encoded_total,
)
from innet.utils.datetime_utils import now_ms

logger = LoggingConfig.get_logger(__name__)

SHARE_PREFIX = "innet-share:"
SHARE_VERSION = 1
# Soft threshold: above it QR codes may not scan reliably, but encoding still succeeds
MAX_SHARE_TOKEN_SIZE = 4096

_BLOCKED_AVATAR_SCHEMES = re.compile(r"^(data:|blob:)", re.IGNORECASE)
_HTTP_URL = re.compile(r"^https?://", re.IGNORECASE)


@dataclass(frozen=True)
class EncodedShareToken:
    """Result of encoding: the token plus the advisory size signal"""
    token: str
    length: int
    oversize: bool
    soft_limit: int = MAX_SHARE_TOKEN_SIZE


@dataclass(frozen=True)
class TokenParseResult:
    """Tagged decode outcome: exactly one of ``payload`` / ``error`` is set"""
    payload: Optional[SharePayload] = None
    error: Optional[ShareDecodeError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> str:
        return "ok" if self.error is None else self.error.kind


# ---------------------------------------------------------------------------
# Sanitization
# ---------------------------------------------------------------------------

def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _clean_id(value: Any) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()[:ID_LIMIT].strip()
    return str(uuid.uuid4())


def _clean_text(value: Any, limit: int, default: str = "") -> str:
    if not isinstance(value, str):
        return default
    return value.strip()[:limit].rstrip() or default


def _clean_contact_field(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip()[:NAME_LIMIT].rstrip() or None


def sanitize_avatar(value: Any) -> Optional[str]:
    """
    Keep only compact http(s) avatar URLs.

    Data and blob URLs (and anything that is not a short http(s) URL) would
    blow past what a QR code can carry, so they collapse to None.
    """
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not trimmed or _BLOCKED_AVATAR_SCHEMES.match(trimmed):
        return None
    if not _HTTP_URL.match(trimmed) or len(trimmed) > AVATAR_URL_LIMIT:
        return None
    return trimmed


def _sanitize_generated_at(value: Any, now: Optional[datetime]) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return now_ms(now)
    if isinstance(value, float) and not math.isfinite(value):
        return now_ms(now)
    return int(value)


def _unique_id(fact_id: str, taken: set) -> str:
    while fact_id in taken:
        fact_id = str(uuid.uuid4())
    taken.add(fact_id)
    return fact_id


def _sanitize_group(raw: Mapping[str, Any], fact_text_limit: int) -> ShareGroup:
    facts = []
    fact_ids = set()
    raw_facts = raw.get("facts")
    for raw_fact in raw_facts if isinstance(raw_facts, list) else []:
        if not isinstance(raw_fact, Mapping):
            continue
        text = _clean_text(raw_fact.get("text"), fact_text_limit)
        if not text:
            continue
        facts.append(ShareFact(id=_unique_id(_clean_id(raw_fact.get("id")), fact_ids), text=text))

    return ShareGroup(
        id=_clean_id(raw.get("id")),
        name=_clean_text(raw.get("name"), NAME_LIMIT, DEFAULT_GROUP_NAME),
        color=_clean_text(raw.get("color"), NAME_LIMIT, DEFAULT_GROUP_COLOR),
        facts=facts,
    )


def _fold_duplicate_groups(groups):
    """Group ids are unique per payload: a repeated id folds its new facts into the first group"""
    by_id = {}
    folded = []
    for group in groups:
        first = by_id.get(group.id)
        if first is None:
            by_id[group.id] = group
            folded.append(group)
            continue
        texts = {fact.text for fact in first.facts}
        fact_ids = {fact.id for fact in first.facts}
        for fact in group.facts:
            if fact.text in texts:
                continue
            first.facts.append(ShareFact(id=_unique_id(fact.id, fact_ids), text=fact.text))
            texts.add(fact.text)
    return folded


def sanitize_payload(
    raw: Union[SharePayload, Mapping[str, Any], Any],
    *,
    fact_text_limit: int = FACT_TEXT_LIMIT,
    now: Optional[datetime] = None,
) -> SharePayload:
    """
    Turn arbitrary input into a payload that satisfies every invariant.

    Idempotent: sanitizing an already sanitized payload returns an equal one.
    """
    if isinstance(raw, SharePayload):
        raw = raw.to_wire()
    data = _as_mapping(raw)
    owner = _as_mapping(data.get("owner"))

    raw_groups = data.get("groups")
    groups = _fold_duplicate_groups(
        _sanitize_group(group, fact_text_limit)
        for group in (raw_groups if isinstance(raw_groups, list) else [])
        if isinstance(group, Mapping)
    )

    return SharePayload(
        v=SHARE_VERSION,
        owner=ShareOwner(
            id=_clean_id(owner.get("id")),
            name=_clean_text(owner.get("name"), NAME_LIMIT, DEFAULT_OWNER_NAME),
            avatar=sanitize_avatar(owner.get("avatar")),
            phone=_clean_contact_field(owner.get("phone")),
            telegram=_clean_contact_field(owner.get("telegram")),
            instagram=_clean_contact_field(owner.get("instagram")),
        ),
        groups=groups,
        generated_at=_sanitize_generated_at(data.get("generatedAt"), now),
    )


# ---------------------------------------------------------------------------
# Encoding / decoding
# ---------------------------------------------------------------------------

def canonical_json(payload: SharePayload) -> str:
    """Compact JSON with a fixed key order (model field order)"""
    return json.dumps(payload.to_wire(), ensure_ascii=False, separators=(",", ":"))


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64url_decode(body: str) -> bytes:
    body = body.rstrip("=")
    padded = body + "=" * (-len(body) % 4)
    return base64.b64decode(padded, altchars=b"-_", validate=True)


def encode_share_token(
    payload: Union[SharePayload, Mapping[str, Any]],
    *,
    soft_limit: int = MAX_SHARE_TOKEN_SIZE,
    fact_text_limit: int = FACT_TEXT_LIMIT,
) -> EncodedShareToken:
    """
    Encode a payload into a share token.

    Never fails on size: when the token is longer than ``soft_limit`` the
    result is flagged ``oversize`` and a warning is logged, because whether
    the QR code scans depends on how large it is printed or displayed.
    """
    sanitized = sanitize_payload(payload, fact_text_limit=fact_text_limit)
    token = SHARE_PREFIX + _b64url_encode(canonical_json(sanitized).encode("utf-8"))
    length = len(token)
    oversize = length > soft_limit

    share_tokens_encoded_total.labels(oversize=str(oversize).lower()).inc()
    share_token_length_chars.observe(length)
    if oversize:
        logger.warning(
            f"Share token length {length} exceeds soft limit {soft_limit}; "
            "QR code is still generated but may not scan reliably",
            extra={
                "token_length": length,
                "soft_limit": soft_limit,
                "group_count": len(sanitized.groups),
                "fact_count": sanitized.fact_count(),
            }
        )

    return EncodedShareToken(token=token, length=length, oversize=oversize, soft_limit=soft_limit)


def _parse(token: Any, fact_text_limit: int) -> SharePayload:
    if not isinstance(token, str):
        raise FormatError(details={"reason": "not_a_string"})
    token = token.strip()
    if not token.startswith(SHARE_PREFIX):
        raise FormatError(details={"reason": "missing_prefix"})

    body = token[len(SHARE_PREFIX):]
    try:
        raw_json = _b64url_decode(body).decode("utf-8")
        parsed = json.loads(raw_json)
    except (binascii.Error, ValueError) as e:
        # json.JSONDecodeError and UnicodeDecodeError are ValueError subclasses
        raise DecodeError(details={"reason": type(e).__name__}) from e

    if not isinstance(parsed, dict):
        raise DecodeError(details={"reason": "payload_not_an_object"})

    version = parsed.get("v")
    if type(version) is not int or version != SHARE_VERSION:
        raise VersionError(details={"version": version, "supported": SHARE_VERSION})

    return sanitize_payload(parsed, fact_text_limit=fact_text_limit)


def parse_share_token(token: Any, *, fact_text_limit: int = FACT_TEXT_LIMIT) -> TokenParseResult:
    """
    Validate and decode a token without raising.

    Callers branch on ``result.ok`` / ``result.kind``.
    """
    try:
        payload = _parse(token, fact_text_limit)
    except ShareDecodeError as e:
        share_tokens_decoded_total.labels(outcome=e.kind).inc()
        logger.info(
            f"Share token rejected: {e.kind}",
            extra={"decode_error": e.kind, "details": e.details}
        )
        return TokenParseResult(error=e)

    share_tokens_decoded_total.labels(outcome="ok").inc()
    return TokenParseResult(payload=payload)


def decode_share_token(token: Any, *, fact_text_limit: int = FACT_TEXT_LIMIT) -> SharePayload:
    """
    Decode a token into a sanitized payload.

    Raises:
        FormatError: prefix missing
        DecodeError: body is not base64url JSON object
        VersionError: protocol version other than SHARE_VERSION
    """
    result = parse_share_token(token, fact_text_limit=fact_text_limit)
    if result.error is not None:
        raise result.error
    return result.payload
