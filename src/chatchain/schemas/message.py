"""Message-related Pydantic schemas."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Message(BaseModel):
    """Canonical message record shared by every storage layer.

    Everything except ``read_by`` is fixed at creation. ``read_by`` is an
    ordered, duplicate-free list that only grows.
    """

    id: str
    sender: str
    receiver: str | None = None
    group_id: str | None = Field(default=None, alias="groupId")
    content: str
    timestamp: int = Field(..., description="Milliseconds since epoch, set by the sender")
    read_by: list[str] = Field(default_factory=list, alias="readBy")
    content_hash: str = Field(..., alias="contentHash")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("receiver", "group_id", mode="before")
    @classmethod
    def _empty_target_is_none(cls, value: str | None) -> str | None:
        return value or None

    @field_validator("read_by")
    @classmethod
    def _dedupe_readers(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))

    @model_validator(mode="after")
    def _exactly_one_target(self) -> Message:
        if (self.receiver is None) == (self.group_id is None):
            raise ValueError("exactly one of receiver or groupId must be set")
        return self

    @classmethod
    def create(
        cls,
        *,
        sender: str,
        content: str,
        timestamp: int,
        content_hash: str,
        receiver: str | None = None,
        group_id: str | None = None,
    ) -> Message:
        """Build a freshly authored message with a new id."""
        return cls(
            id=str(uuid.uuid4()),
            sender=sender,
            receiver=receiver,
            group_id=group_id,
            content=content,
            timestamp=timestamp,
            read_by=[sender],
            content_hash=content_hash,
        )

    def has_reader(self, user_id: str) -> bool:
        return user_id in self.read_by

    def is_unread_for(self, viewer: str) -> bool:
        """Return True if ``viewer`` received this message and has not read it."""
        return viewer != self.sender and viewer not in self.read_by

    def with_readers(self, readers: list[str]) -> Message:
        """Return a copy whose reader list is the union with ``readers``."""
        merged = list(dict.fromkeys([*self.read_by, *readers]))
        if merged == self.read_by:
            return self
        return self.model_copy(update={"read_by": merged})


class MessageCreate(BaseModel):
    """Schema for sending a new message."""

    content: str = Field(..., min_length=1, description="Message text")
    receiver: str | None = Field(None, description="Recipient user id for a direct message")
    group_id: str | None = Field(None, alias="groupId", description="Target group id")

    model_config = ConfigDict(populate_by_name=True)


class MessageRead(BaseModel):
    """Schema for a batch read-receipt update."""

    message_ids: list[str] = Field(..., alias="messageIds", min_length=1)

    model_config = ConfigDict(populate_by_name=True)
