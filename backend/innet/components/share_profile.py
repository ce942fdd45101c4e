"""
Builds the owner's share payload from their profile and fact groups.

Plan limits arrive as plain numbers (None means unlimited); entitlement logic
itself lives elsewhere.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Mapping, Optional, Sequence, Union

from innet.components.contracts import FACT_TEXT_LIMIT, ShareGroup, SharePayload
from innet.components.share_codec import SHARE_VERSION, sanitize_payload
from innet.utils.datetime_utils import now_ms


def clean_value(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def clean_handle(value: Any) -> Optional[str]:
    """Normalise a messenger handle to exactly one leading '@'"""
    cleaned = clean_value(value)
    if not cleaned:
        return None
    bare = cleaned.lstrip("@")
    return f"@{bare}" if bare else None


def _effective_limit(limit: Optional[int]) -> Optional[int]:
    if limit is None or limit <= 0:
        return None
    return limit


def _group_dict(group: Union[ShareGroup, Mapping[str, Any]]) -> Mapping[str, Any]:
    return group.to_wire() if isinstance(group, ShareGroup) else group


def select_groups(
    groups: Sequence[Union[ShareGroup, Mapping[str, Any]]],
    selected_ids: Optional[Sequence[str]] = None,
) -> List[Mapping[str, Any]]:
    """Groups in selection order; no selection means every group"""
    items = [_group_dict(group) for group in groups]
    if selected_ids is None:
        return items
    by_id = {item.get("id"): item for item in items}
    return [by_id[group_id] for group_id in selected_ids if group_id in by_id]


def build_share_payload(
    owner_id: str,
    profile: Mapping[str, Any],
    groups: Sequence[Union[ShareGroup, Mapping[str, Any]]],
    *,
    selected_group_ids: Optional[Sequence[str]] = None,
    group_limit: Optional[int] = None,
    facts_per_group_limit: Optional[int] = None,
    fact_length_limit: Optional[int] = None,
    now: Optional[datetime] = None,
) -> SharePayload:
    """
    Assemble a sanitized payload for the selected fact groups.

    Args:
        owner_id: Stable profile id; reused across shares so receivers merge
        profile: name/surname/avatar/phone/telegram/instagram of the owner
        groups: Owner's fact groups
        selected_group_ids: Ids to share, in order (None = all)
        group_limit: Max groups per share (plan limit)
        facts_per_group_limit: Max facts taken from each group (plan limit)
        fact_length_limit: Max characters per fact (plan limit)
    """
    chosen = select_groups(groups, selected_group_ids)
    max_groups = _effective_limit(group_limit)
    if max_groups is not None:
        chosen = chosen[:max_groups]

    max_facts = _effective_limit(facts_per_group_limit)
    limited_groups = []
    for group in chosen:
        facts = group.get("facts")
        facts = list(facts) if isinstance(facts, list) else []
        limited_groups.append({**group, "facts": facts[:max_facts] if max_facts else facts})

    text_limit = _effective_limit(fact_length_limit) or FACT_TEXT_LIMIT
    full_name = " ".join(
        part for part in (clean_value(profile.get("name")), clean_value(profile.get("surname"))) if part
    )

    return sanitize_payload(
        {
            "v": SHARE_VERSION,
            "owner": {
                "id": owner_id,
                "name": full_name,
                "avatar": clean_value(profile.get("avatar")),
                "phone": clean_value(profile.get("phone")),
                "telegram": clean_handle(profile.get("telegram")),
                "instagram": clean_handle(profile.get("instagram")),
            },
            "groups": limited_groups,
            "generatedAt": now_ms(now),
        },
        fact_text_limit=min(text_limit, FACT_TEXT_LIMIT),
    )
