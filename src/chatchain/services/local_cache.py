"""Append-only local mirror of every message this client has sent or seen."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from threading import Lock

from pydantic import ValidationError

from chatchain.schemas.conversation import ConversationKey
from chatchain.schemas.message import Message
from chatchain.services.json_store import read_json, write_json

logger = logging.getLogger(__name__)


class LocalCache:
    """Durable, id-keyed message cache.

    Appends are idempotent per id: a second append of a known id only unions
    its readers into the cached record. Every mutation is written through to
    ``path`` unless ``autosave`` is disabled, in which case ``persist`` must
    be called explicitly.
    """

    def __init__(self, path: Path, *, autosave: bool = True) -> None:
        self.path = path
        self.autosave = autosave
        self._lock = Lock()
        self._messages: dict[str, Message] = {}
        self.reload()

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._messages

    def append(self, message: Message) -> bool:
        """Store ``message``; returns False if the id was already cached."""
        return bool(self.append_many([message]))

    def append_many(self, messages: Iterable[Message]) -> list[str]:
        """Store each message with a single write; returns the ids that were new."""
        added: list[str] = []
        changed = False
        with self._lock:
            for message in messages:
                existing = self._messages.get(message.id)
                if existing is None:
                    self._messages[message.id] = message
                    added.append(message.id)
                    changed = True
                    continue
                merged = existing.with_readers(message.read_by)
                if merged is not existing:
                    self._messages[message.id] = merged
                    changed = True
            if changed:
                self._autosave()
        return added

    def get(self, message_id: str) -> Message | None:
        return self._messages.get(message_id)

    def all(self) -> list[Message]:
        with self._lock:
            return list(self._messages.values())

    def matching(self, key: ConversationKey) -> list[Message]:
        with self._lock:
            return [message for message in self._messages.values() if key.matches(message)]

    def add_reader(self, message_id: str, user_id: str) -> bool:
        """Record ``user_id`` as a reader; returns True if the set grew."""
        return bool(self.add_readers([message_id], user_id))

    def add_readers(self, message_ids: Iterable[str], user_id: str) -> list[str]:
        """Record ``user_id`` on each cached id with a single write; returns the ids that grew."""
        grown: list[str] = []
        with self._lock:
            for message_id in message_ids:
                message = self._messages.get(message_id)
                if message is None or message.has_reader(user_id):
                    continue
                self._messages[message_id] = message.with_readers([user_id])
                grown.append(message_id)
            if grown:
                self._autosave()
        return grown

    def clear(self) -> None:
        """Drop every cached message, in memory and on disk."""
        with self._lock:
            self._messages.clear()
            self._write()
        logger.info("Cleared local message cache at %s", self.path)

    def persist(self) -> None:
        with self._lock:
            self._write()

    def reload(self) -> None:
        """Replace the in-memory state with what is on disk."""
        raw = read_json(self.path, [])
        loaded: dict[str, Message] = {}
        if not isinstance(raw, list):
            logger.warning("Ignoring local cache at %s: expected a list", self.path)
            raw = []
        for item in raw:
            try:
                message = Message.model_validate(item)
            except ValidationError as exc:
                logger.warning("Skipping unreadable cached message: %s", exc)
                continue
            previous = loaded.get(message.id)
            loaded[message.id] = message if previous is None else previous.with_readers(message.read_by)
        with self._lock:
            self._messages = loaded
        logger.debug("Loaded %d cached messages from %s", len(loaded), self.path)

    def _autosave(self) -> None:
        if self.autosave:
            self._write()

    def _write(self) -> None:
        write_json(
            self.path,
            [message.model_dump(mode="json", by_alias=True) for message in self._messages.values()],
        )
