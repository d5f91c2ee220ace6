"""Per-user "delete for me" overlay.

Hiding a message only removes it from one viewer's results. The underlying
record in the cache and the ledger is never touched, and other users keep
seeing it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from threading import Lock

from chatchain.services.json_store import read_json, write_json

logger = logging.getLogger(__name__)


class DeletionOverlay:
    """Mapping of user id to the set of message ids hidden from that user."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = Lock()
        self._hidden: dict[str, set[str]] = {}
        self.reload()

    def hide(self, message_id: str, user_id: str) -> None:
        with self._lock:
            hidden = self._hidden.setdefault(user_id, set())
            if message_id in hidden:
                return
            hidden.add(message_id)
            self._write()

    def is_hidden(self, message_id: str, user_id: str) -> bool:
        return message_id in self._hidden.get(user_id, ())

    def hidden_for(self, user_id: str) -> frozenset[str]:
        return frozenset(self._hidden.get(user_id, ()))

    def clear(self, user_id: str) -> int:
        """Restore every message hidden from ``user_id``; returns how many."""
        with self._lock:
            restored = self._hidden.pop(user_id, set())
            if restored:
                self._write()
        return len(restored)

    def reload(self) -> None:
        raw = read_json(self.path, {})
        if not isinstance(raw, dict):
            logger.warning("Ignoring deletion overlay at %s: expected an object", self.path)
            raw = {}
        with self._lock:
            self._hidden = {
                str(user): {str(message_id) for message_id in ids}
                for user, ids in raw.items()
                if isinstance(ids, list)
            }

    def persist(self) -> None:
        with self._lock:
            self._write()

    def _write(self) -> None:
        write_json(self.path, {user: sorted(ids) for user, ids in self._hidden.items() if ids})
