"""Conversation keys and derived conversation views."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .message import Message


@dataclass(frozen=True)
class DirectKey:
    """Unordered pair of users identifying a direct conversation."""

    user_a: str
    user_b: str

    def __post_init__(self) -> None:
        if self.user_a > self.user_b:
            first, second = self.user_b, self.user_a
            object.__setattr__(self, "user_a", first)
            object.__setattr__(self, "user_b", second)

    @property
    def participants(self) -> frozenset[str]:
        return frozenset((self.user_a, self.user_b))

    def matches(self, message: Message) -> bool:
        if message.group_id is not None or message.receiver is None:
            return False
        return {message.sender, message.receiver} == set(self.participants)

    def __str__(self) -> str:
        return f"direct:{self.user_a}:{self.user_b}"


@dataclass(frozen=True)
class GroupKey:
    """Group id identifying a group conversation."""

    group_id: str

    def matches(self, message: Message) -> bool:
        return message.group_id == self.group_id

    def __str__(self) -> str:
        return f"group:{self.group_id}"


ConversationKey = DirectKey | GroupKey


class Group(BaseModel):
    """Group metadata owned by the contacts collaborator."""

    id: str
    name: str
    members: list[str] = Field(default_factory=list)
    created_by: str = Field(..., alias="createdBy")
    created_at: int = Field(..., alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)


class Conversation(BaseModel):
    """Derived per-viewer view over the messages of one conversation.

    ``participants`` lists the other side(s) of the conversation, never the
    viewer. ``last_message`` and ``unread_count`` are recomputed on every
    refresh and are not stored anywhere.
    """

    id: str
    type: Literal["direct", "group"]
    participants: list[str] = Field(default_factory=list)
    group_info: Group | None = Field(default=None, alias="groupInfo")
    last_message: Message | None = Field(default=None, alias="lastMessage")
    unread_count: int = Field(default=0, alias="unreadCount")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def direct(cls, contact_id: str) -> Conversation:
        return cls(id=f"conv_{contact_id}", type="direct", participants=[contact_id])

    @classmethod
    def group(cls, group: Group, viewer: str | None = None) -> Conversation:
        members = [member for member in group.members if member != viewer]
        return cls(
            id=f"conv_{group.id}",
            type="group",
            participants=members,
            group_info=group,
        )

    def key_for(self, viewer: str) -> ConversationKey:
        """Return the storage key used to fetch this conversation for ``viewer``."""
        if self.type == "group":
            if self.group_info is None:
                raise ValueError(f"group conversation {self.id} has no group info")
            return GroupKey(self.group_info.id)
        if not self.participants:
            raise ValueError(f"direct conversation {self.id} has no participant")
        return DirectKey(viewer, self.participants[0])
