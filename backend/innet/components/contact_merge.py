"""
Contact Merge Engine.

Folds a decoded share payload into the local contact list. The owner id is
the merge key (``Contact.remote_id``); groups match by id and facts within a
group match by text, so re-scanning the same code never duplicates anything.

The engine works on a snapshot and returns a new list; it never mutates its
inputs and performs no I/O. Persisting the result is up to the caller.
"""

from __future__ import annotations

import math
import uuid
import zlib
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Union

from innet.components.contracts import (
    CONTACT_NOTE_LIMIT,
    DEFAULT_GROUP_COLOR,
    DEFAULT_GROUP_NAME,
    DEFAULT_OWNER_NAME,
    Contact,
    ContactConnection,
    ContactFact,
    ContactGroup,
    ContactNote,
    ContactTag,
    SharePayload,
)
from innet.components.share_codec import sanitize_payload
from innet.core.logging_config import LoggingConfig
from innet.core.metrics import contact_merges_total
from innet.utils.datetime_utils import now_ms

logger = LoggingConfig.get_logger(__name__)

UNNAMED_CONTACT = "Без имени"
UNNAMED_CONNECTION = "Контакт"
TAG_COLOR_PRESETS = (
    "#38BDF8",
    "#FB923C",
    "#22C55E",
    "#A855F7",
    "#F472B6",
    "#14B8A6",
    "#FACC15",
)


@dataclass(frozen=True)
class MergeResult:
    """Outcome of folding one payload into the contact list"""
    contact: Contact
    was_created: bool
    added_facts_count: int
    contacts: List[Contact]


# ---------------------------------------------------------------------------
# Stored contact normalisation
# ---------------------------------------------------------------------------

def _str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _number(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return int(value)


def _list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _new_id() -> str:
    return str(uuid.uuid4())


def pick_tag_color(label: str, seed: Optional[str] = None) -> str:
    """Keep a valid ``#RRGGBB``/``#RRGGBBAA`` color, otherwise derive one from the label"""
    if seed and seed.startswith("#") and len(seed) in (7, 9):
        return seed
    return TAG_COLOR_PRESETS[zlib.crc32(label.encode("utf-8")) % len(TAG_COLOR_PRESETS)]


def _normalize_fact(raw: Any) -> Optional[ContactFact]:
    if isinstance(raw, str):
        return ContactFact(id=_new_id(), text=raw) if raw else None
    if not isinstance(raw, Mapping):
        return None
    text = _str(raw.get("text"))
    if not text:
        return None
    return ContactFact(id=_str(raw.get("id")) or _new_id(), text=text)


def _normalize_group(raw: Any) -> ContactGroup:
    record = raw if isinstance(raw, Mapping) else {}
    facts = [fact for fact in map(_normalize_fact, _list(record.get("facts"))) if fact is not None]
    return ContactGroup(
        id=_str(record.get("id")) or _new_id(),
        name=_str(record.get("name")) or DEFAULT_GROUP_NAME,
        color=_str(record.get("color")) or DEFAULT_GROUP_COLOR,
        facts=facts,
    )


def _normalize_note(raw: Any, fallback_ms: int) -> Optional[ContactNote]:
    if not isinstance(raw, Mapping):
        return None
    text = (_str(raw.get("text")) or "")[:CONTACT_NOTE_LIMIT]
    if not text:
        return None
    created_at = _number(raw.get("createdAt"))
    return ContactNote(
        id=_str(raw.get("id")) or _new_id(),
        text=text,
        created_at=fallback_ms if created_at is None else created_at,
    )


def _normalize_tag(raw: Any) -> Optional[ContactTag]:
    if not isinstance(raw, Mapping):
        return None
    label = (_str(raw.get("label")) or "").strip()
    if not label:
        return None
    return ContactTag(
        id=_str(raw.get("id")) or _new_id(),
        label=label,
        color=pick_tag_color(label, _str(raw.get("color"))),
    )


def _normalize_connection(raw: Any) -> Optional[ContactConnection]:
    if not isinstance(raw, Mapping):
        return None
    return ContactConnection(
        id=_str(raw.get("id")) or _new_id(),
        name=(_str(raw.get("name")) or "").strip() or UNNAMED_CONNECTION,
        avatar=_str(raw.get("avatar")),
    )


def normalize_contact(raw: Any, *, now: Optional[datetime] = None) -> Optional[Contact]:
    """
    Turn a stored contact record into a ``Contact``.

    Stored data may be partial or written by an older client. Broken
    sub-fields become empty defaults instead of failing the whole record;
    only a record that is not an object at all yields None. Legacy records
    carrying ``receivedGroups`` (a list of group ids) get empty placeholder
    groups for those ids.
    """
    if isinstance(raw, Contact):
        return raw.model_copy(deep=True)
    if not isinstance(raw, Mapping):
        return None

    fallback_ms = now_ms(now)
    groups = [_normalize_group(group) for group in _list(raw.get("groups"))]
    if not groups:
        groups = [
            ContactGroup(id=group_id, name=DEFAULT_GROUP_NAME, color=DEFAULT_GROUP_COLOR)
            for group_id in _list(raw.get("receivedGroups"))
            if isinstance(group_id, str)
        ]

    notes = [note for note in (_normalize_note(item, fallback_ms) for item in _list(raw.get("notes"))) if note]
    tags = [tag for tag in map(_normalize_tag, _list(raw.get("tags"))) if tag]
    connections = [item for item in map(_normalize_connection, _list(raw.get("connections"))) if item]

    local_id = _str(raw.get("id"))
    connected_at = _number(raw.get("connectedAt"))
    last_updated = _number(raw.get("lastUpdated"))

    return Contact(
        id=local_id or _new_id(),
        remote_id=_str(raw.get("remoteId")) or local_id or _new_id(),
        name=_str(raw.get("name")) or UNNAMED_CONTACT,
        avatar=_str(raw.get("avatar")),
        phone=_str(raw.get("phone")),
        telegram=_str(raw.get("telegram")),
        instagram=_str(raw.get("instagram")),
        connected_at=fallback_ms if connected_at is None else connected_at,
        last_updated=fallback_ms if last_updated is None else last_updated,
        groups=groups,
        notes=notes,
        tags=tags,
        connections=connections,
    )


def normalize_contacts(raw_contacts: Any, *, now: Optional[datetime] = None) -> List[Contact]:
    """Normalise a stored contact list, skipping records that are not objects"""
    contacts = []
    for item in _list(raw_contacts):
        contact = normalize_contact(item, now=now)
        if contact is not None:
            contacts.append(contact)
    return contacts


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------

def _copy_group(group) -> ContactGroup:
    return ContactGroup(
        id=group.id,
        name=group.name,
        color=group.color,
        facts=[ContactFact(id=fact.id, text=fact.text) for fact in group.facts],
    )


def _merge_group(target: ContactGroup, incoming) -> int:
    added = 0
    known_texts = {fact.text for fact in target.facts}
    known_ids = {fact.id for fact in target.facts}
    for fact in incoming.facts:
        if not fact.text or fact.text in known_texts:
            continue
        fact_id = fact.id if fact.id not in known_ids else _new_id()
        target.facts.append(ContactFact(id=fact_id, text=fact.text))
        known_texts.add(fact.text)
        known_ids.add(fact_id)
        added += 1

    target.name = incoming.name or target.name
    target.color = incoming.color or target.color
    return added


def _create_contact(payload: SharePayload, stamp: int) -> Contact:
    owner = payload.owner
    return Contact(
        id=_new_id(),
        remote_id=owner.id,
        name=owner.name or DEFAULT_OWNER_NAME,
        avatar=owner.avatar,
        phone=owner.phone,
        telegram=owner.telegram,
        instagram=owner.instagram,
        connected_at=stamp,
        last_updated=stamp,
        groups=[_copy_group(group) for group in payload.groups],
        notes=[],
        tags=[],
        connections=[],
    )


def _update_contact(contact: Contact, payload: SharePayload, stamp: int) -> int:
    groups_by_id = {}
    for group in contact.groups:
        groups_by_id.setdefault(group.id, group)
    added = 0
    for group in payload.groups:
        target = groups_by_id.get(group.id)
        if target is None:
            target = _copy_group(group)
            contact.groups.append(target)
            groups_by_id[target.id] = target
            added += len(target.facts)
        else:
            added += _merge_group(target, group)

    owner = payload.owner
    contact.name = owner.name or contact.name
    contact.avatar = owner.avatar or contact.avatar
    contact.phone = owner.phone or contact.phone
    contact.telegram = owner.telegram or contact.telegram
    contact.instagram = owner.instagram or contact.instagram
    contact.last_updated = stamp
    return added


def merge_contact(
    payload: Union[SharePayload, Mapping[str, Any]],
    existing_contacts: Iterable[Union[Contact, Mapping[str, Any]]],
    *,
    now: Optional[datetime] = None,
) -> MergeResult:
    """
    Fold a payload into the contact list.

    Args:
        payload: Decoded payload or raw mapping; sanitized first either way
        existing_contacts: Current contact list; stored records are normalised
        now: Clock override for ``connectedAt``/``lastUpdated``

    Returns:
        MergeResult with the affected contact, whether it was created, the
        number of genuinely new facts and the new contact list. A new contact
        goes to the front of the list; an updated one keeps its position.
    """
    payload = sanitize_payload(payload, now=now)

    stamp = now_ms(now)
    contacts = normalize_contacts(list(existing_contacts), now=now)
    index = next(
        (i for i, contact in enumerate(contacts) if contact.remote_id == payload.owner.id),
        None,
    )

    if index is None:
        contact = _create_contact(payload, stamp)
        added = contact.fact_count()
        contacts.insert(0, contact)
        contact_merges_total.labels(result="created").inc()
        logger.debug(
            f"Created contact from share: {added} facts",
            extra={"remote_id": payload.owner.id, "added_facts": added}
        )
        return MergeResult(contact=contact, was_created=True, added_facts_count=added, contacts=contacts)

    contact = contacts[index]
    added = _update_contact(contact, payload, stamp)
    contact_merges_total.labels(result="updated").inc()
    logger.debug(
        f"Merged share into existing contact: {added} new facts",
        extra={"remote_id": payload.owner.id, "contact_id": contact.id, "added_facts": added}
    )
    return MergeResult(contact=contact, was_created=False, added_facts_count=added, contacts=contacts)
