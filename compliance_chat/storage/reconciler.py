"""Local cache and recent-session history per document scope.

Keeps the current session of every scope resumable without asking the
server, and remembers the most recent prior sessions so they can be
re-entered from memory. Each scope is read from the store once and then
mirrored in memory; every change is written through immediately.

Store keys per scope:
    - ``chat:<scope>:session_id``: id of the current session
    - ``chat:<scope>:messages``: message log of the current session
    - ``chat:<scope>:history``: recent sessions, newest first
"""

import asyncio
import logging
import re
from collections.abc import Sequence

from pydantic import TypeAdapter, ValidationError

from compliance_chat.models.schemas import CacheEntry, HistoryEntry, Message
from compliance_chat.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

GENERAL_SCOPE = "general"

_messages_adapter = TypeAdapter(list[Message])
_history_adapter = TypeAdapter(list[HistoryEntry])
_WHITESPACE = re.compile(r"\s+")


class HistoryReconciler:
    """Cache of current and recent sessions, keyed by document scope."""

    def __init__(
        self,
        store: KeyValueStore,
        history_limit: int = 10,
        preview_length: int = 80,
    ) -> None:
        """Initialize the reconciler.

        Args:
            store: Backing key-value store.
            history_limit: Number of recent sessions kept per scope.
            preview_length: Maximum length of a history preview.
        """
        self._store = store
        self._history_limit = history_limit
        self._preview_length = preview_length
        self._entries: dict[str, CacheEntry] = {}

    @staticmethod
    def scope_key(document_id: str | None) -> str:
        """Scope name for a document, or the general scope."""
        return GENERAL_SCOPE if document_id is None else f"document:{document_id}"

    @staticmethod
    def _key(scope: str, name: str) -> str:
        return f"chat:{scope}:{name}"

    def _read(self, scope: str) -> CacheEntry:
        session_id = self._store.get(self._key(scope, "session_id"))
        try:
            messages = _messages_adapter.validate_python(
                self._store.get(self._key(scope, "messages")) or []
            )
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cached messages for {scope}: {e.error_count()} error(s)")
            messages = []
        try:
            history = _history_adapter.validate_python(
                self._store.get(self._key(scope, "history")) or []
            )
        except ValidationError as e:
            logger.warning(f"Discarding unreadable session history for {scope}: {e.error_count()} error(s)")
            history = []
        return CacheEntry(session_id=session_id, messages=messages, history=history)

    def load(self, scope: str) -> CacheEntry:
        """Return the cached state of a scope (empty if nothing is cached)."""
        if scope not in self._entries:
            self._entries[scope] = self._read(scope)
        return self._entries[scope]

    def _remember(self, scope: str, session_id: str, messages: Sequence[Message]) -> None:
        entry = self.load(scope)
        entry.session_id = session_id
        entry.messages = list(messages)

    def _flush_current(self, scope: str) -> None:
        # Writes the latest in-memory state, so out-of-order flushes converge.
        entry = self.load(scope)
        self._store.set_many(
            {
                self._key(scope, "session_id"): entry.session_id,
                self._key(scope, "messages"): _messages_adapter.dump_python(
                    entry.messages, mode="json"
                ),
            }
        )

    def save(self, scope: str, session_id: str, messages: Sequence[Message]) -> None:
        """Overwrite the current session and message log of a scope."""
        self._remember(scope, session_id, messages)
        self._flush_current(scope)

    async def asave(self, scope: str, session_id: str, messages: Sequence[Message]) -> None:
        """Like save(), with the store write done in a worker thread."""
        self._remember(scope, session_id, messages)
        await asyncio.to_thread(self._flush_current, scope)

    def history(self, scope: str) -> list[HistoryEntry]:
        """Recent sessions of a scope, newest first."""
        return list(self.load(scope).history)

    def _preview(self, messages: Sequence[Message]) -> str:
        text = _WHITESPACE.sub(" ", messages[-1].content).strip()
        if len(text) <= self._preview_length:
            return text
        return text[: self._preview_length - 3].rstrip() + "..."

    def _write_history(self, scope: str, history: list[HistoryEntry]) -> None:
        self.load(scope).history = history
        self._store.set(
            self._key(scope, "history"),
            _history_adapter.dump_python(history, mode="json"),
        )

    def archive(
        self,
        scope: str,
        session_id: str,
        messages: Sequence[Message],
    ) -> HistoryEntry | None:
        """Record a session in the scope's recent history.

        A session already in the history is replaced rather than
        duplicated. Empty sessions are not recorded.

        Returns:
            The new history entry, or None if the session was empty.
        """
        if not messages:
            return None
        entry = HistoryEntry(
            session_id=session_id,
            last_message_preview=self._preview(messages),
            messages=list(messages),
        )
        history = [entry] + [h for h in self.load(scope).history if h.session_id != session_id]
        self._write_history(scope, history[: self._history_limit])
        logger.info(f"Archived session {session_id} in {scope} ({len(messages)} messages)")
        return entry

    def restore(self, scope: str, session_id: str) -> list[Message] | None:
        """Messages of a session known locally, or None if it must be fetched."""
        entry = self.load(scope)
        if entry.session_id == session_id and entry.messages:
            return list(entry.messages)
        for item in entry.history:
            if item.session_id == session_id:
                return list(item.messages)
        return None

    def forget(self, scope: str, session_id: str) -> None:
        """Drop every local trace of a session."""
        entry = self.load(scope)
        if any(h.session_id == session_id for h in entry.history):
            self._write_history(scope, [h for h in entry.history if h.session_id != session_id])
        if entry.session_id == session_id:
            entry.session_id = None
            entry.messages = []
            self._store.delete(self._key(scope, "session_id"))
            self._store.delete(self._key(scope, "messages"))
