"""Per-conversation previews: last message and unread count."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence

from chatchain.schemas.conversation import Conversation
from chatchain.schemas.message import Message
from chatchain.services.sync_engine import MessageSyncEngine

logger = logging.getLogger(__name__)


def summarize_messages(conversation: Conversation, messages: Sequence[Message], viewer: str) -> Conversation:
    """Return ``conversation`` with preview fields derived from ``messages``.

    ``messages`` must already be filtered for the viewer and sorted.
    """
    return conversation.model_copy(
        update={
            "last_message": messages[-1] if messages else None,
            "unread_count": sum(1 for message in messages if message.is_unread_for(viewer)),
        }
    )


class ConversationAggregator:
    """Recomputes previews for every conversation a user holds."""

    def __init__(self, engine: MessageSyncEngine) -> None:
        self.engine = engine

    async def summarize_one(self, conversation: Conversation, viewer: str) -> Conversation:
        try:
            key = conversation.key_for(viewer)
        except ValueError as exc:
            logger.warning("Skipping conversation %s: %s", conversation.id, exc)
            return conversation
        messages = await self.engine.fetch(key, viewer, enrich=False)
        return summarize_messages(conversation, messages, viewer)

    async def summarize(self, conversations: Iterable[Conversation], viewer: str) -> list[Conversation]:
        return list(
            await asyncio.gather(
                *(self.summarize_one(conversation, viewer) for conversation in conversations)
            )
        )
