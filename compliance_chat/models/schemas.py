from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_message_id() -> str:
    return uuid4().hex


def _coerce_document_id(v: Any) -> Any:
    """Accept numeric document ids from the wire as strings."""
    if isinstance(v, int) and not isinstance(v, bool):
        return str(v)
    return v


class Role(str, Enum):
    """Speaker of a chat message."""

    USER = "user"
    BOT = "bot"


class ChatStatus(str, Enum):
    """Send state of a conversation."""

    IDLE = "idle"
    SENDING = "sending"


class Reference(BaseModel):
    """A citation to a source document attached to a bot answer.

    Attributes:
        document_id: Identifier of the cited document.
        file_name: Stored file name of the cited document.
        title: Human readable title.
        blob_url: Optional direct link to the stored file.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    document_id: str
    file_name: str = ""
    title: str = ""
    blob_url: str | None = None

    coerce_document_id = field_validator("document_id", mode="before")(_coerce_document_id)


class Message(BaseModel):
    """A single chat message in the conversation.

    Attributes:
        id: Locally unique identifier within a session.
        role: The speaker (user or bot).
        content: Markdown text; grows while a bot answer streams in.
        timestamp: When the message was created.
        references: Citations attached to a bot answer.
        is_error: Whether this is a synthetic failure notice.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_message_id)
    role: Role
    content: str = ""
    timestamp: datetime = Field(default_factory=_utcnow)
    references: tuple[Reference, ...] = ()
    is_error: bool = False


class Session(BaseModel):
    """A server-tracked conversation, optionally scoped to one document.

    Attributes:
        session_id: Server-assigned opaque identifier.
        document_id: Document the session is bound to (None for general chat).
        history: Messages of the session, oldest first.
        title: Optional label shown in session pickers.
        created_at: Optional creation time reported by the server.
    """

    model_config = ConfigDict(extra="ignore")

    session_id: str
    document_id: str | None = None
    history: list[Message] = Field(default_factory=list)
    title: str | None = None
    created_at: datetime | None = None

    coerce_document_id = field_validator("document_id", mode="before")(_coerce_document_id)


class HistoryEntry(BaseModel):
    """Summary of a prior session kept for quick re-entry.

    Attributes:
        session_id: Archived session identifier.
        last_message_preview: Truncated text of the last message.
        timestamp: When the session was archived.
        messages: Archived message log used to restore without a network call.
    """

    session_id: str
    last_message_preview: str = ""
    timestamp: datetime = Field(default_factory=_utcnow)
    messages: list[Message] = Field(default_factory=list)


class CacheEntry(BaseModel):
    """Cached chat state for one document scope."""

    session_id: str | None = None
    messages: list[Message] = Field(default_factory=list)
    history: list[HistoryEntry] = Field(default_factory=list)


class ChunkEvent(BaseModel):
    """An incremental text fragment to append to the in-progress answer."""

    type: Literal["chunk"] = "chunk"
    content: str


class ReferencesEvent(BaseModel):
    """Full replacement of the in-progress answer's reference list."""

    type: Literal["references"] = "references"
    data: list[Reference] = Field(default_factory=list)


ProtocolEvent = Annotated[ChunkEvent | ReferencesEvent, Field(discriminator="type")]

EVENT_TYPES = frozenset({"chunk", "references"})


class SendMessageRequest(BaseModel):
    """Request payload for the streamed message endpoint."""

    query: str = Field(..., min_length=1)

    @field_validator("query", mode="before")
    @classmethod
    def strip_query(cls, v: str) -> str:
        """Strip whitespace from the query before validation."""
        if isinstance(v, str):
            return v.strip()
        return v


class CreateSessionResponse(BaseModel):
    """Response of the create-session endpoint."""

    model_config = ConfigDict(extra="ignore")

    session_id: str
    document_id: str | None = None

    coerce_document_id = field_validator("document_id", mode="before")(_coerce_document_id)


_BOT_ROLES = frozenset({"bot", "assistant", "ai"})


class HistoryItem(BaseModel):
    """One entry of a server-side transcript."""

    model_config = ConfigDict(extra="ignore")

    role: str
    content: str = ""
    timestamp: datetime | None = None
    references: list[Reference] = Field(default_factory=list)

    def to_message(self) -> Message:
        """Convert to a local Message with a fresh id."""
        role = Role.BOT if self.role.lower() in _BOT_ROLES else Role.USER
        fields: dict[str, Any] = {
            "role": role,
            "content": self.content,
            "references": tuple(self.references),
        }
        if self.timestamp is not None:
            fields["timestamp"] = self.timestamp
        return Message(**fields)


class ChatHistoryResponse(BaseModel):
    """Response of the history endpoint."""

    chat_history: list[HistoryItem] = Field(default_factory=list)
