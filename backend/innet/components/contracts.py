"""
Contract models for share payloads and locally stored contacts.

Wire names are camelCase (`generatedAt`, `remoteId`, ...) because tokens and
stored contacts are exchanged with the web client; Python code uses the
snake_case attribute names. Both spellings are accepted on input.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Field caps shared by the codec and the merge engine
NAME_LIMIT = 64
ID_LIMIT = 64
FACT_TEXT_LIMIT = 4000
AVATAR_URL_LIMIT = 256
CONTACT_NOTE_LIMIT = 128

DEFAULT_OWNER_NAME = "Новый контакт"
DEFAULT_GROUP_NAME = "Группа фактов"
DEFAULT_GROUP_COLOR = "#475569"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        """JSON-ready dict with camelCase keys and absent optionals omitted"""
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Share payload (what travels inside a token)
# ---------------------------------------------------------------------------

class ShareFact(_WireModel):
    id: str
    text: str


class ShareGroup(_WireModel):
    id: str
    name: str
    color: str
    facts: List[ShareFact] = Field(default_factory=list)


class ShareOwner(_WireModel):
    id: str
    name: str
    avatar: Optional[str] = None
    phone: Optional[str] = None
    telegram: Optional[str] = None
    instagram: Optional[str] = None


class SharePayload(_WireModel):
    v: int
    owner: ShareOwner
    groups: List[ShareGroup] = Field(default_factory=list)
    generated_at: int = Field(alias="generatedAt")

    def fact_count(self) -> int:
        return sum(len(group.facts) for group in self.groups)


# ---------------------------------------------------------------------------
# Local contact list (what a scan is merged into)
# ---------------------------------------------------------------------------

class ContactFact(_WireModel):
    id: str
    text: str


class ContactGroup(_WireModel):
    id: str
    name: str
    color: str
    facts: List[ContactFact] = Field(default_factory=list)


class ContactNote(_WireModel):
    id: str
    text: str
    created_at: int = Field(alias="createdAt")


class ContactTag(_WireModel):
    id: str
    label: str
    color: str


class ContactConnection(_WireModel):
    id: str
    name: str
    avatar: Optional[str] = None


class Contact(_WireModel):
    id: str
    remote_id: str = Field(alias="remoteId")
    name: str
    avatar: Optional[str] = None
    phone: Optional[str] = None
    telegram: Optional[str] = None
    instagram: Optional[str] = None
    connected_at: int = Field(alias="connectedAt")
    last_updated: int = Field(alias="lastUpdated")
    groups: List[ContactGroup] = Field(default_factory=list)
    notes: List[ContactNote] = Field(default_factory=list)
    tags: List[ContactTag] = Field(default_factory=list)
    connections: Optional[List[ContactConnection]] = None

    def fact_count(self) -> int:
        return sum(len(group.facts) for group in self.groups)
