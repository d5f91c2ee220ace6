"""Read-receipt tracking across the local cache and the remote ledger."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from chatchain.schemas.message import Message
from chatchain.services.errors import ReadReceiptWriteFailedError
from chatchain.services.local_cache import LocalCache
from chatchain.services.remote_ledger import RemoteLedger

logger = logging.getLogger(__name__)


def unread_ids(messages: Iterable[Message], viewer: str) -> list[str]:
    """Ids of messages addressed to ``viewer`` that it has not read yet."""
    return [message.id for message in messages if message.is_unread_for(viewer)]


class ReadReceiptTracker:
    """Grows per-message reader sets; never removes a reader.

    A failed remote append is logged and remembered, so the next
    ``mark_read`` for that id retries it even though the local cache already
    lists the reader. Remote appends are idempotent, so retrying is safe.
    """

    def __init__(self, cache: LocalCache, ledger: RemoteLedger) -> None:
        self.cache = cache
        self.ledger = ledger
        self._unsynced: set[tuple[str, str]] = set()

    async def mark_read(self, message_ids: Iterable[str], viewer: str) -> list[str]:
        """Record ``viewer`` as a reader of each id; returns the ids that were recorded."""
        pending: list[str] = []
        for message_id in dict.fromkeys(message_ids):
            cached = self.cache.get(message_id)
            if (
                cached is not None
                and cached.has_reader(viewer)
                and (message_id, viewer) not in self._unsynced
            ):
                continue
            pending.append(message_id)

        if not pending:
            return []

        grown = set(await asyncio.to_thread(self.cache.add_readers, pending, viewer))
        synced = await asyncio.gather(*(self._sync_one(message_id, viewer) for message_id in pending))
        return [
            message_id
            for message_id, remote_ok in zip(pending, synced)
            if message_id in grown or remote_ok
        ]

    async def _sync_one(self, message_id: str, viewer: str) -> bool:
        try:
            appended = await self.ledger.append_reader(message_id, viewer)
        except ReadReceiptWriteFailedError as exc:
            self._unsynced.add((message_id, viewer))
            logger.warning("Read receipt for %s not synced, will retry: %s", message_id, exc)
            return False
        self._unsynced.discard((message_id, viewer))
        return appended
