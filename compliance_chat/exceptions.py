"""Exception hierarchy for the chat client.

Transport failures carry the HTTP status (when there is one) and the
response text so callers can decide how to surface them.
"""


class ChatClientError(Exception):
    """Base class for all chat client errors."""


class TransportError(ChatClientError):
    """Raised on non-2xx responses, network failures and stream aborts."""

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        self.detail = detail
        self.status_code = status_code
        if status_code is not None:
            super().__init__(f"HTTP {status_code}: {detail}")
        else:
            super().__init__(detail)


class AuthenticationError(TransportError):
    """Raised on 401/403 after the stored token has been invalidated."""


class StreamTimeoutError(TransportError):
    """Raised when a stream stays silent longer than the idle timeout."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"No data received for {timeout:g}s")


class SessionNotFoundError(ChatClientError):
    """Raised when the server has no record of a session."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")
