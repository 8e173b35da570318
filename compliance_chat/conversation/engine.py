"""Async chat engine driving the conversation state machine.

Connects the pure transitions in ``state`` to the session endpoints and
the local cache:

- every fold of a streamed event is persisted to the cache;
- only one send may be in flight; a second send is ignored;
- switching or starting sessions stops consuming the current stream
  without undoing what was already received;
- a session the server no longer knows is replaced by a new one, also
  when that is only discovered by a send.
"""

import logging
from collections.abc import Callable
from contextlib import aclosing

from compliance_chat.client.sessions import SessionStore
from compliance_chat.conversation.state import (
    ERROR_MESSAGE,
    ConversationState,
    abandon,
    apply_event,
    fail,
    finish,
    start_session,
    submit,
)
from compliance_chat.exceptions import (
    AuthenticationError,
    SessionNotFoundError,
    StreamTimeoutError,
    TransportError,
)
from compliance_chat.models.schemas import HistoryEntry, Session
from compliance_chat.storage.reconciler import HistoryReconciler
from compliance_chat.streaming.ndjson import iter_events

logger = logging.getLogger(__name__)

OnChange = Callable[[ConversationState], None]


def describe_failure(error: TransportError) -> str:
    """User-facing text for a failed send."""
    if isinstance(error, AuthenticationError):
        return "Your session has expired. Please sign in again."
    if isinstance(error, StreamTimeoutError):
        return "The response timed out. Please try again."
    return ERROR_MESSAGE


class ChatEngine:
    """Conversation controller for one document scope.

    Attributes:
        state: Current conversation snapshot.
        sessions: Sessions from the last refresh_sessions() call.
    """

    def __init__(
        self,
        store: SessionStore,
        cache: HistoryReconciler,
        document_id: str | None = None,
        idle_timeout: float | None = 60.0,
        on_change: OnChange | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Session endpoints.
            cache: Local cache and recent-session history.
            document_id: Document scope; None for general chat.
            idle_timeout: Seconds of stream silence before a send fails.
            on_change: Called with the new state after every change.
        """
        self._store = store
        self._cache = cache
        self._scope = cache.scope_key(document_id)
        self._idle_timeout = idle_timeout
        self._on_change = on_change
        self._generation = 0
        self.state = ConversationState(document_id=document_id)
        self.sessions: list[Session] = []

    @property
    def document_id(self) -> str | None:
        return self.state.document_id

    def _set_state(self, state: ConversationState, persist: bool = True) -> None:
        self.state = state
        if persist and state.session_id is not None:
            self._cache.save(self._scope, state.session_id, state.messages)
        if self._on_change is not None:
            self._on_change(state)

    async def _commit(self, state: ConversationState) -> None:
        """Set the state and persist it without blocking the event loop."""
        self._set_state(state, persist=False)
        if state.session_id is not None:
            await self._cache.asave(self._scope, state.session_id, state.messages)

    def recent_sessions(self) -> list[HistoryEntry]:
        """Locally archived sessions of this scope, newest first."""
        return self._cache.history(self._scope)

    async def _start_new_session(self) -> ConversationState:
        session = await self._store.create_session(self.document_id)
        await self._commit(start_session(self.state, session.session_id))
        return self.state

    async def _load_or_create(self, session_id: str) -> ConversationState:
        try:
            messages = await self._store.load_history(session_id)
        except SessionNotFoundError:
            logger.warning(f"Session {session_id} no longer exists; starting a new one")
            self._cache.forget(self._scope, session_id)
            return await self._start_new_session()
        logger.info(f"Loaded {len(messages)} messages for session {session_id} from server")
        await self._commit(start_session(self.state, session_id, messages))
        return self.state

    def _archive_current(self) -> None:
        if self.state.session_id is not None:
            self._cache.archive(self._scope, self.state.session_id, self.state.messages)

    async def open(self) -> ConversationState:
        """Resume the cached session of this scope, or create one."""
        entry = self._cache.load(self._scope)
        if entry.session_id is None:
            return await self._start_new_session()
        if entry.messages:
            logger.info(f"Restored session {entry.session_id} from cache")
            self._set_state(start_session(self.state, entry.session_id, entry.messages), persist=False)
            return self.state
        return await self._load_or_create(entry.session_id)

    async def _attach_new_session(self, generation: int) -> None:
        """Create a session for the in-flight send, keeping its messages."""
        session = await self._store.create_session(self.document_id)
        if generation == self._generation:
            await self._commit(self.state.model_copy(update={"session_id": session.session_id}))

    def _nothing_received(self) -> bool:
        pending = self.state.pending_message
        return pending is not None and not pending.content and not pending.references

    async def _stream_answer(self, text: str, generation: int) -> None:
        if generation != self._generation:
            return
        async with self._store.open_message_stream(self.state.session_id, text) as handle:
            async with aclosing(iter_events(handle, self._idle_timeout)) as events:
                async for event in events:
                    if generation != self._generation:
                        logger.info("Stopped consuming an abandoned answer stream")
                        return
                    await self._commit(apply_event(self.state, event))

    async def send(self, text: str) -> ConversationState:
        """Send a user message and fold the streamed answer into the log.

        Ignored if the text is blank or a send is already in flight.
        Transport failures end the send with a visible error message
        instead of raising. If the server no longer knows the session, the
        message is sent once more in a new session.
        """
        text = text.strip()
        if not text or self.state.is_sending:
            return self.state

        generation = self._generation
        await self._commit(submit(self.state, text))

        try:
            if self.state.session_id is None:
                await self._attach_new_session(generation)
            try:
                await self._stream_answer(text, generation)
            except TransportError as e:
                stale = e.status_code == 404 and generation == self._generation
                if not stale or not self._nothing_received():
                    raise
                logger.warning(
                    f"Session {self.state.session_id} no longer exists; resending in a new session"
                )
                self._cache.forget(self._scope, self.state.session_id)
                await self._attach_new_session(generation)
                await self._stream_answer(text, generation)
        except TransportError as e:
            if generation != self._generation:
                return self.state
            logger.warning(f"Send failed for session {self.state.session_id}: {e}")
            await self._commit(fail(self.state, describe_failure(e)))
            return self.state

        if generation != self._generation:
            return self.state
        await self._commit(finish(self.state))
        await self.refresh_sessions()
        return self.state

    def cancel(self) -> None:
        """Stop consuming the in-flight answer, keeping what was received."""
        self._generation += 1
        if self.state.is_sending:
            logger.info(f"Cancelled in-flight answer for session {self.state.session_id}")
            self._set_state(abandon(self.state))

    async def new_session(self) -> ConversationState:
        """Archive the current session and start an empty one."""
        self.cancel()
        self._archive_current()
        return await self._start_new_session()

    async def switch_session(self, session_id: str) -> ConversationState:
        """Make another session current, from local history when possible."""
        if session_id == self.state.session_id:
            return self.state
        self.cancel()
        self._archive_current()
        messages = self._cache.restore(self._scope, session_id)
        if messages is not None:
            logger.info(f"Restored session {session_id} from local history")
            await self._commit(start_session(self.state, session_id, messages))
            return self.state
        return await self._load_or_create(session_id)

    async def delete_session(self, session_id: str) -> ConversationState:
        """Delete a session; deleting the current one starts a new session."""
        is_current = session_id == self.state.session_id
        if is_current:
            self.cancel()
        await self._store.delete_session(session_id)
        self._cache.forget(self._scope, session_id)
        if is_current:
            await self._start_new_session()
        await self.refresh_sessions()
        return self.state

    async def refresh_sessions(self) -> list[Session]:
        """Reload the session list shown in a picker.

        General chat lists the server's no-document sessions; document
        chat lists the locally archived sessions of the document. A failed
        refresh keeps the previous list.
        """
        if self.document_id is None:
            try:
                self.sessions = await self._store.list_sessions()
            except TransportError as e:
                logger.warning(f"Could not refresh session list: {e}")
        else:
            self.sessions = [
                Session(
                    session_id=entry.session_id,
                    document_id=self.document_id,
                    history=entry.messages,
                    title=entry.last_message_preview,
                    created_at=entry.timestamp,
                )
                for entry in self.recent_sessions()
            ]
        return self.sessions
