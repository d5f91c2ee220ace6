"""Message synchronization engine.

Reconciles the three places a message can live: the local cache (fast path
and offline backstop), the remote ledger (cross-device truth) and the content
store (archival copy). Every adapter may be slow or down; the engine degrades
to whatever the remaining sources hold rather than raising.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

from chatchain.core.settings import Settings, settings
from chatchain.db.time import now_ms
from chatchain.schemas.conversation import ConversationKey
from chatchain.schemas.message import Message
from chatchain.schemas.publish_config import Configured, Unconfigured
from chatchain.services.content_store import (
    ContentStore,
    PublishConfigStore,
    is_fallback_locator,
    load_publish_config,
)
from chatchain.services.deletion_overlay import DeletionOverlay
from chatchain.services.errors import (
    InvalidRecipientError,
    RemoteReadFailedError,
    RemoteWriteFailedError,
)
from chatchain.services.local_cache import LocalCache
from chatchain.services.read_receipts import ReadReceiptTracker
from chatchain.services.remote_ledger import RemoteLedger

logger = logging.getLogger(__name__)


def merge_by_id(remote: Iterable[Message], local: Iterable[Message]) -> list[Message]:
    """Collapse both sources into one record per id.

    The remote record wins when both hold an id, except that reader sets are
    unioned. Local-only messages (e.g. sent while offline) are appended.
    """
    merged: dict[str, Message] = {}
    for message in remote:
        previous = merged.get(message.id)
        merged[message.id] = message if previous is None else previous.with_readers(message.read_by)
    for message in local:
        previous = merged.get(message.id)
        merged[message.id] = message if previous is None else previous.with_readers(message.read_by)
    return list(merged.values())


def sort_messages(messages: Iterable[Message]) -> list[Message]:
    return sorted(messages, key=lambda message: (message.timestamp, message.id))


def build_payload(
    sender: str, receiver: str | None, group_id: str | None, content: str, timestamp: int
) -> dict[str, Any]:
    """Content payload archived for a message."""
    return {
        "sender": sender,
        "receiver": receiver,
        "groupId": group_id,
        "content": content,
        "timestamp": timestamp,
    }


class MessageSyncEngine:
    """Send, fetch and read-state operations for one client installation."""

    def __init__(
        self,
        content_store: ContentStore,
        ledger: RemoteLedger,
        cache: LocalCache,
        overlay: DeletionOverlay,
        *,
        publish_config_store: PublishConfigStore | None = None,
        app_settings: Settings | None = None,
    ) -> None:
        self.content_store = content_store
        self.publish_config_store = publish_config_store
        self.ledger = ledger
        self.cache = cache
        self.overlay = overlay
        self.receipts = ReadReceiptTracker(cache, ledger)
        self.settings = app_settings or settings

    async def send(
        self,
        sender: str,
        content: str,
        *,
        receiver: str | None = None,
        group_id: str | None = None,
    ) -> Message:
        """Author a message, archive it, cache it and mirror it remotely.

        Only an invalid target raises; archival and remote failures degrade.
        """
        receiver = receiver or None
        group_id = group_id or None
        if (receiver is None) == (group_id is None):
            raise InvalidRecipientError("Exactly one of receiver or group_id is required")

        timestamp = now_ms()
        locator = await self.content_store.publish(
            build_payload(sender, receiver, group_id, content, timestamp)
        )
        message = Message.create(
            sender=sender,
            receiver=receiver,
            group_id=group_id,
            content=content,
            timestamp=timestamp,
            content_hash=locator,
        )

        await asyncio.to_thread(self.cache.append, message)

        try:
            await self.ledger.insert(message)
        except RemoteWriteFailedError as exc:
            logger.warning("Message %s kept locally only: %s", message.id, exc)
        else:
            logger.debug("Message %s mirrored to remote ledger", message.id)

        return message

    async def fetch(
        self,
        key: ConversationKey,
        viewer: str,
        *,
        enrich: bool | None = None,
    ) -> list[Message]:
        """Return the viewer's messages for ``key`` in timestamp order."""
        remote_result, local = await asyncio.gather(
            self._query_remote(key),
            asyncio.to_thread(self.cache.matching, key),
        )

        merged = merge_by_id(remote_result, local)
        await self._mirror_observed(remote_result)

        if self.settings.enrich_on_fetch if enrich is None else enrich:
            await self._enrich(merged)

        visible = [message for message in merged if not self.overlay.is_hidden(message.id, viewer)]
        return sort_messages(visible)

    async def _query_remote(self, key: ConversationKey) -> list[Message]:
        try:
            return await self.ledger.query(key)
        except RemoteReadFailedError as exc:
            logger.warning("Remote ledger unavailable for %s, using local cache: %s", key, exc)
            return []

    async def _mirror_observed(self, remote: list[Message]) -> None:
        if remote:
            await asyncio.to_thread(self.cache.append_many, remote)

    async def _enrich(self, messages: list[Message]) -> None:
        archived = [message for message in messages if not is_fallback_locator(message.content_hash)]
        if not archived:
            return
        payloads = await asyncio.gather(
            *(self.content_store.resolve(message.content_hash) for message in archived)
        )
        for message, payload in zip(archived, payloads):
            if payload is None:
                continue
            if payload.get("content") != message.content:
                logger.warning(
                    "Archived payload %s does not match message %s",
                    message.content_hash,
                    message.id,
                )

    async def mark_read(self, message_ids: Iterable[str], viewer: str) -> list[str]:
        """Add ``viewer`` to the readers of each message id."""
        return await self.receipts.mark_read(message_ids, viewer)

    def hide(self, message_id: str, viewer: str) -> None:
        """Delete a message for ``viewer`` only."""
        self.overlay.hide(message_id, viewer)

    def restore(self, viewer: str) -> int:
        """Bring back every message ``viewer`` deleted for themselves."""
        return self.overlay.clear(viewer)

    def clear_cache(self) -> None:
        self.cache.clear()

    def configure_publishing(self, config: Configured | Unconfigured) -> None:
        """Switch the content store mode and remember the choice locally."""
        self.content_store.configure(config)
        if self.publish_config_store is not None:
            self.publish_config_store.save(config)

    def reset_publishing(self) -> None:
        """Forget stored credentials and fall back to the environment defaults."""
        if self.publish_config_store is not None:
            self.publish_config_store.clear()
        self.content_store.configure(load_publish_config(self.publish_config_store, self.settings))


def build_engine(app_settings: Settings | None = None, session_factory: Any | None = None) -> MessageSyncEngine:
    """Wire an engine and its adapters from settings.

    The publish config comes from the persisted record when there is one,
    otherwise from the Pinata keys in the environment.
    """
    app_settings = app_settings or settings
    if session_factory is None:
        from chatchain.db.session import SessionLocal

        session_factory = SessionLocal

    config_store = PublishConfigStore(app_settings.publish_config_path)
    content_store = ContentStore(
        load_publish_config(config_store, app_settings),
        app_settings=app_settings,
    )
    engine = MessageSyncEngine(
        content_store,
        RemoteLedger(session_factory),
        LocalCache(app_settings.messages_path),
        DeletionOverlay(app_settings.deleted_messages_path),
        publish_config_store=config_store,
        app_settings=app_settings,
    )
    return engine
