"""Conversation state machine.

State is immutable; every transition is a pure function returning a new
ConversationState, so the rules can be tested without any I/O.

    idle    --submit-->      sending   (user message + empty bot placeholder)
    sending --apply_event--> sending   (chunk appends, references replace)
    sending --finish-->      idle      (bot message frozen)
    sending --fail-->        idle      (error message appended)
    sending --abandon-->     idle      (cancelled; empty placeholder dropped)
    any     --start_session-> idle     (new or restored session)
"""

from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict

from compliance_chat.models.schemas import (
    ChatStatus,
    ChunkEvent,
    Message,
    ProtocolEvent,
    ReferencesEvent,
    Role,
)

ERROR_MESSAGE = "Sorry, I encountered an error while processing your request. Please try again."


class ConversationState(BaseModel):
    """Snapshot of one conversation.

    Attributes:
        session_id: Current session, None until one is created or restored.
        document_id: Document scope of the conversation.
        messages: Message log, oldest first.
        status: Whether a send is in flight.
        pending_id: Id of the bot message being streamed, if any.
    """

    model_config = ConfigDict(frozen=True)

    session_id: str | None = None
    document_id: str | None = None
    messages: tuple[Message, ...] = ()
    status: ChatStatus = ChatStatus.IDLE
    pending_id: str | None = None

    @property
    def is_sending(self) -> bool:
        return self.status is ChatStatus.SENDING

    @property
    def pending_message(self) -> Message | None:
        if self.pending_id is None:
            return None
        for message in reversed(self.messages):
            if message.id == self.pending_id:
                return message
        return None


def start_session(
    state: ConversationState,
    session_id: str,
    messages: Sequence[Message] = (),
) -> ConversationState:
    """Replace the active session, dropping any in-flight send."""
    return ConversationState(
        session_id=session_id,
        document_id=state.document_id,
        messages=tuple(messages),
    )


def submit(state: ConversationState, text: str) -> ConversationState:
    """Append the user message and an empty bot placeholder.

    A submit while a send is in flight returns the state unchanged.
    """
    if state.is_sending:
        return state
    user_message = Message(role=Role.USER, content=text)
    placeholder = Message(role=Role.BOT)
    return state.model_copy(
        update={
            "messages": (*state.messages, user_message, placeholder),
            "status": ChatStatus.SENDING,
            "pending_id": placeholder.id,
        }
    )


def _replace_pending(state: ConversationState, updated: Message) -> ConversationState:
    messages = tuple(updated if m.id == updated.id else m for m in state.messages)
    return state.model_copy(update={"messages": messages})


def apply_event(state: ConversationState, event: ProtocolEvent) -> ConversationState:
    """Fold one protocol event into the in-progress bot message."""
    pending = state.pending_message
    if not state.is_sending or pending is None:
        return state
    if isinstance(event, ChunkEvent):
        updated = pending.model_copy(update={"content": pending.content + event.content})
    elif isinstance(event, ReferencesEvent):
        updated = pending.model_copy(update={"references": tuple(event.data)})
    else:
        return state
    return _replace_pending(state, updated)


def finish(state: ConversationState) -> ConversationState:
    """End the send; the bot message keeps whatever it received."""
    if not state.is_sending:
        return state
    return state.model_copy(update={"status": ChatStatus.IDLE, "pending_id": None})


def _drop_empty_pending(state: ConversationState) -> tuple[Message, ...]:
    pending = state.pending_message
    if pending is None or pending.content or pending.references:
        return state.messages
    return tuple(m for m in state.messages if m.id != pending.id)


def abandon(state: ConversationState) -> ConversationState:
    """Stop waiting for the answer without reporting an error.

    Partial content already streamed stays; a placeholder that received
    nothing is dropped.
    """
    if not state.is_sending:
        return state
    return state.model_copy(
        update={
            "messages": _drop_empty_pending(state),
            "status": ChatStatus.IDLE,
            "pending_id": None,
        }
    )


def fail(state: ConversationState, reason: str = ERROR_MESSAGE) -> ConversationState:
    """End the send with a visible error.

    Partial content already streamed stays; an empty placeholder is
    dropped. One synthetic error message is appended.
    """
    if not state.is_sending:
        return state
    error = Message(role=Role.BOT, content=reason, is_error=True)
    return state.model_copy(
        update={
            "messages": (*_drop_empty_pending(state), error),
            "status": ChatStatus.IDLE,
            "pending_id": None,
        }
    )
