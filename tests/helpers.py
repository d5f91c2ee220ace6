# tests/helpers.py
"""Builders shared by the test modules."""

from __future__ import annotations

from jose import jwt

from chatchain.core.settings import settings
from chatchain.schemas.message import Message

FALLBACK_PATTERN = r"^0x[0-9a-f]{64}$"


def auth_headers(user_id: str) -> dict[str, str]:
    """Bearer headers as the session service would issue them."""
    token = jwt.encode({"sub": user_id}, settings.secret_key, algorithm=settings.jwt_algorithm)
    return {"Authorization": f"Bearer {token}"}


def make_message(
    message_id: str,
    *,
    sender: str = "alice",
    receiver: str | None = "bob",
    group_id: str | None = None,
    content: str = "hello",
    timestamp: int = 1,
    read_by: list[str] | None = None,
    content_hash: str = "0x" + "0" * 64,
) -> Message:
    """Build a message with sensible defaults for tests."""
    return Message(
        id=message_id,
        sender=sender,
        receiver=None if group_id else receiver,
        group_id=group_id,
        content=content,
        timestamp=timestamp,
        read_by=read_by if read_by is not None else [sender],
        content_hash=content_hash,
    )
