"""Adapter over the shared relational store of messages.

The ledger is the cross-device source of truth. All blocking SQLAlchemy work
runs in a worker thread so the adapter can be awaited alongside the local
cache and the content store.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from threading import Lock
from typing import Any

from pydantic import ValidationError
from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from chatchain.models import LedgerMessage
from chatchain.schemas.conversation import ConversationKey, DirectKey, GroupKey
from chatchain.schemas.message import Message
from chatchain.services.errors import (
    MalformedRowError,
    ReadReceiptWriteFailedError,
    RemoteReadFailedError,
    RemoteWriteFailedError,
)

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("id", "sender", "content", "timestamp", "content_hash")


def row_to_message(row: LedgerMessage | Mapping[str, Any]) -> Message:
    """Map a loosely-typed ledger row onto the canonical ``Message``.

    Accepts ORM instances or plain mappings (e.g. rows from a REST mirror of
    the same table). Raises ``MalformedRowError`` instead of letting partial
    data through.
    """
    if isinstance(row, LedgerMessage):
        data: dict[str, Any] = {
            "id": row.id,
            "sender": row.sender,
            "receiver": row.receiver,
            "group_id": row.group_id,
            "content": row.content,
            "timestamp": row.timestamp,
            "read_by": row.read_by,
            "content_hash": row.content_hash,
        }
    else:
        data = dict(row)

    missing = [name for name in REQUIRED_COLUMNS if data.get(name) in (None, "")]
    if missing:
        raise MalformedRowError(f"Ledger row {data.get('id')!r} missing {', '.join(missing)}")

    read_by = data.get("read_by")
    if read_by is None:
        read_by = []
    if not isinstance(read_by, list) or not all(isinstance(item, str) for item in read_by):
        raise MalformedRowError(f"Ledger row {data['id']!r} has invalid read_by {read_by!r}")

    try:
        return Message(
            id=str(data["id"]),
            sender=str(data["sender"]),
            receiver=data.get("receiver"),
            group_id=data.get("group_id"),
            content=data["content"],
            timestamp=int(data["timestamp"]),
            read_by=read_by,
            content_hash=str(data["content_hash"]),
        )
    except (ValidationError, TypeError, ValueError) as exc:
        raise MalformedRowError(f"Ledger row {data['id']!r} is malformed: {exc}") from exc


def message_to_row(message: Message) -> LedgerMessage:
    return LedgerMessage(
        id=message.id,
        sender=message.sender,
        receiver=message.receiver,
        group_id=message.group_id,
        content=message.content,
        timestamp=message.timestamp,
        read_by=list(message.read_by),
        content_hash=message.content_hash,
    )


class RemoteLedger:
    """Best-effort CRUD against the shared message table."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory
        # Serialises this client's read-modify-write cycles; FOR UPDATE covers other clients.
        self._reader_lock = Lock()

    async def insert(self, message: Message) -> None:
        """Insert ``message``; an already-present id is left untouched."""
        await asyncio.to_thread(self._insert, message)

    def _insert(self, message: Message) -> None:
        try:
            with self._session_factory() as db:
                if db.get(LedgerMessage, message.id) is not None:
                    logger.debug("Ledger already holds message %s", message.id)
                    return
                db.add(message_to_row(message))
                db.commit()
        except SQLAlchemyError as exc:
            raise RemoteWriteFailedError(f"Could not insert message {message.id}: {exc}") from exc

    async def query(self, key: ConversationKey) -> list[Message]:
        """Return every well-formed message belonging to ``key``."""
        return await asyncio.to_thread(self._query, key)

    def _query(self, key: ConversationKey) -> list[Message]:
        if isinstance(key, GroupKey):
            stmt = select(LedgerMessage).where(LedgerMessage.group_id == key.group_id)
        else:
            people = (key.user_a, key.user_b)
            # Either-side match over-fetches; post-filtered to the exact pair below.
            stmt = select(LedgerMessage).where(
                LedgerMessage.group_id.is_(None),
                or_(LedgerMessage.sender.in_(people), LedgerMessage.receiver.in_(people)),
            )

        try:
            with self._session_factory() as db:
                rows = db.scalars(stmt.order_by(LedgerMessage.timestamp)).all()
                messages: list[Message] = []
                for row in rows:
                    try:
                        messages.append(row_to_message(row))
                    except MalformedRowError as exc:
                        logger.warning("Skipping malformed ledger row: %s", exc)
        except SQLAlchemyError as exc:
            raise RemoteReadFailedError(f"Could not query {key}: {exc}") from exc

        if isinstance(key, DirectKey):
            messages = [message for message in messages if key.matches(message)]
        return messages

    async def append_reader(self, message_id: str, user_id: str) -> bool:
        """Add ``user_id`` to the remote reader set.

        Returns False when the ledger does not hold ``message_id``.
        """
        return await asyncio.to_thread(self._append_reader, message_id, user_id)

    def _append_reader(self, message_id: str, user_id: str) -> bool:
        try:
            with self._reader_lock, self._session_factory() as db:
                row = db.scalars(
                    select(LedgerMessage)
                    .where(LedgerMessage.id == message_id)
                    .with_for_update()
                ).first()
                if row is None:
                    return False
                current = list(row.read_by or [])
                if user_id not in current:
                    # Assign a new list so the JSON column is flagged dirty.
                    row.read_by = [*current, user_id]
                    db.commit()
                return True
        except SQLAlchemyError as exc:
            raise ReadReceiptWriteFailedError(
                f"Could not add reader {user_id} to message {message_id}: {exc}"
            ) from exc
