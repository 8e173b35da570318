"""Conversation logic for chat sessions.

Responsibilities:
    - Idle/Sending state machine as pure transition functions
    - Folding streamed chunk and reference events into the bot answer
    - Session creation, switching, deletion and cooperative cancellation
    - Persisting every change to the local cache

Independent of any UI; the NiceGUI page only renders ChatEngine.state.
"""

from compliance_chat.conversation.engine import ChatEngine, describe_failure
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

__all__ = [
    "ERROR_MESSAGE",
    "ChatEngine",
    "ConversationState",
    "abandon",
    "apply_event",
    "describe_failure",
    "fail",
    "finish",
    "start_session",
    "submit",
]
