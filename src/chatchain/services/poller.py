"""Periodic refresh of the active conversation.

The poller is the single logical actor of a user session. Selecting a
conversation starts a refresh task keyed by that conversation; selecting
another one (or deselecting) cancels it before anything else happens.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from enum import Enum

from chatchain.core.settings import settings
from chatchain.schemas.conversation import Conversation
from chatchain.schemas.message import Message
from chatchain.services.conversations import ConversationAggregator, summarize_messages
from chatchain.services.errors import SyncError
from chatchain.services.read_receipts import unread_ids
from chatchain.services.sync_engine import MessageSyncEngine

logger = logging.getLogger(__name__)

MessagesCallback = Callable[[Conversation, list[Message]], Awaitable[None] | None]
ConversationsCallback = Callable[[list[Conversation]], Awaitable[None] | None]


class PollState(Enum):
    """Refresh state of the active conversation."""

    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"


async def _notify(callback: Callable[..., Awaitable[None] | None] | None, *args: object) -> None:
    if callback is None:
        return
    result = callback(*args)
    if asyncio.iscoroutine(result):
        await result


class ConversationPoller:
    """Keeps the active conversation and every preview current."""

    def __init__(
        self,
        engine: MessageSyncEngine,
        viewer: str,
        conversations: Iterable[Conversation] = (),
        *,
        interval: float | None = None,
        mark_read_on_load: bool = True,
        on_messages: MessagesCallback | None = None,
        on_conversations: ConversationsCallback | None = None,
    ) -> None:
        self.engine = engine
        self.viewer = viewer
        self.aggregator = ConversationAggregator(engine)
        self.conversations: list[Conversation] = list(conversations)
        self.interval = max(0.01, float(interval if interval is not None else settings.poll_interval_seconds))
        self.mark_read_on_load = mark_read_on_load
        self.on_messages = on_messages
        self.on_conversations = on_conversations

        self.state = PollState.IDLE
        self.active: Conversation | None = None
        self.messages: list[Message] = []
        self._loaded_count: int | None = None
        self._generation = 0
        self._task: asyncio.Task[None] | None = None

    def set_conversations(self, conversations: Iterable[Conversation]) -> None:
        self.conversations = list(conversations)

    async def select(self, conversation: Conversation) -> None:
        """Make ``conversation`` active and start refreshing it."""
        await self._cancel()
        self._generation += 1
        self.active = conversation
        self.messages = []
        self._loaded_count = None
        self.state = PollState.LOADING
        self._task = asyncio.create_task(self._run(conversation, self._generation))

    async def deselect(self) -> None:
        """Stop refreshing and return to idle."""
        await self._cancel()
        self._generation += 1
        self.active = None
        self.messages = []
        self._loaded_count = None
        self.state = PollState.IDLE

    async def close(self) -> None:
        await self.deselect()

    async def _cancel(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Refresh task ended with an error")
        self._task = None

    async def _run(self, conversation: Conversation, generation: int) -> None:
        while generation == self._generation:
            try:
                await self.refresh(conversation, generation)
            except (SyncError, OSError, ValueError) as exc:
                logger.warning("Refreshing %s failed: %s", conversation.id, exc)
            except Exception:
                logger.exception("Unexpected error refreshing %s", conversation.id)
            await asyncio.sleep(self.interval)

    async def refresh(self, conversation: Conversation | None = None, generation: int | None = None) -> bool:
        """Run one Loading -> Loaded cycle; returns True if the list was applied."""
        conversation = conversation or self.active
        generation = self._generation if generation is None else generation
        if conversation is None:
            return False

        self.state = PollState.LOADING
        key = conversation.key_for(self.viewer)
        # An abandoned fetch may finish in the background; its result is dropped below.
        messages = await asyncio.shield(self.engine.fetch(key, self.viewer))
        if generation != self._generation:
            logger.debug("Dropping stale refresh for %s", conversation.id)
            return False

        applied = False
        if self._loaded_count != len(messages):
            if self.mark_read_on_load:
                pending = unread_ids(messages, self.viewer)
                if pending:
                    marked = set(await self.engine.mark_read(pending, self.viewer))
                    messages = [
                        message.with_readers([self.viewer]) if message.id in marked else message
                        for message in messages
                    ]
            if generation != self._generation:
                return False
            self.messages = messages
            self._loaded_count = len(messages)
            applied = True
            await _notify(self.on_messages, conversation, messages)

        await self._refresh_previews(conversation, messages, generation)
        if generation == self._generation:
            self.state = PollState.LOADED
        return applied

    async def _refresh_previews(
        self, active: Conversation, active_messages: list[Message], generation: int
    ) -> None:
        others = [conversation for conversation in self.conversations if conversation.id != active.id]
        summaries = {
            summary.id: summary
            for summary in await self.aggregator.summarize(others, self.viewer)
        }
        summaries[active.id] = summarize_messages(active, active_messages, self.viewer)
        if generation != self._generation:
            return

        updated = [summaries.get(conversation.id, conversation) for conversation in self.conversations]
        if all(conversation.id != active.id for conversation in self.conversations):
            updated.append(summaries[active.id])
        self.conversations = updated
        await _notify(self.on_conversations, updated)
