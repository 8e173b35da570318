"""Session endpoints of the compliance chat API.

The store only performs the transitions it is asked for: it never creates
a session behind the caller's back. Deciding when to create, restore or
fall back is the chat engine's job.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from pydantic import TypeAdapter, ValidationError

from compliance_chat.client.config import ClientConfig, get_client_config
from compliance_chat.client.transport import ApiClient, StreamHandle, get_api_client
from compliance_chat.exceptions import SessionNotFoundError, TransportError
from compliance_chat.models.schemas import (
    ChatHistoryResponse,
    CreateSessionResponse,
    Message,
    SendMessageRequest,
    Session,
)

logger = logging.getLogger(__name__)

_session_list = TypeAdapter(list[Session])


class SessionStore:
    """Create, list, delete and load chat sessions over HTTP."""

    def __init__(self, client: ApiClient) -> None:
        self._client = client

    async def list_sessions(self) -> list[Session]:
        """List sessions that are not bound to a document.

        Returns:
            Sessions as reported by the server, in server order.

        Raises:
            TransportError: If the request fails or the payload is malformed.
        """
        payload = await self._client.get_json("/api/chat/no-document")
        try:
            return _session_list.validate_python(payload)
        except ValidationError as e:
            raise TransportError(f"Malformed session listing: {e}") from e

    async def create_session(self, document_id: str | None = None) -> Session:
        """Request a new server-side session.

        Args:
            document_id: Document to bind the session to; None for a general session.

        Returns:
            The new session with an empty history.
        """
        body = {"document_id": document_id} if document_id is not None else None
        payload = await self._client.post_json("/api/chat/new", json=body)
        try:
            created = CreateSessionResponse.model_validate(payload)
        except ValidationError as e:
            raise TransportError(f"Malformed create-session response: {e}") from e
        logger.info(f"Created chat session {created.session_id} (document={document_id})")
        return Session(
            session_id=created.session_id,
            document_id=created.document_id if created.document_id is not None else document_id,
        )

    async def delete_session(self, session_id: str) -> None:
        """Delete a session. Deleting an unknown session is not an error."""
        try:
            await self._client.delete(f"/api/chat/{session_id}")
        except TransportError as e:
            if e.status_code != 404:
                raise
            logger.debug(f"Session {session_id} already deleted")
            return
        logger.info(f"Deleted chat session {session_id}")

    async def load_history(self, session_id: str) -> list[Message]:
        """Fetch the durable transcript of a session.

        Raises:
            SessionNotFoundError: If the server does not know the session.
            TransportError: On any other failure.
        """
        try:
            payload = await self._client.get_json(f"/api/chat/{session_id}/history")
        except TransportError as e:
            if e.status_code == 404:
                raise SessionNotFoundError(session_id) from e
            raise
        try:
            history = ChatHistoryResponse.model_validate(payload)
        except ValidationError as e:
            raise TransportError(f"Malformed history response: {e}") from e
        return [item.to_message() for item in history.chat_history]

    @asynccontextmanager
    async def open_message_stream(self, session_id: str, query: str) -> AsyncIterator[StreamHandle]:
        """Send a user message and stream the NDJSON answer.

        Yields:
            StreamHandle over the answer body.
        """
        request = SendMessageRequest(query=query)
        async with self._client.open_stream(
            "POST",
            f"/api/chat/{session_id}/message",
            json=request.model_dump(),
        ) as handle:
            yield handle


# Module-level singleton instance
_session_store: SessionStore | None = None


def get_session_store(config: ClientConfig | None = None) -> SessionStore:
    """Get or create the global session store.

    Returns:
        The SessionStore instance.
    """
    global _session_store
    if _session_store is None:
        _session_store = SessionStore(get_api_client(config or get_client_config()))
    return _session_store
