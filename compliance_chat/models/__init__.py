"""Pydantic models for chat sessions, messages and the streaming protocol.

Provides type safety and validation at the wire and cache boundaries.

Models:
    - Message, Reference: conversation content and citations
    - Session, HistoryEntry, CacheEntry: session identity and local cache
    - ChunkEvent, ReferencesEvent: NDJSON protocol events
    - CreateSessionResponse, ChatHistoryResponse, HistoryItem: REST payloads
"""

from compliance_chat.models.schemas import (
    EVENT_TYPES,
    CacheEntry,
    ChatHistoryResponse,
    ChatStatus,
    ChunkEvent,
    CreateSessionResponse,
    HistoryEntry,
    HistoryItem,
    Message,
    ProtocolEvent,
    Reference,
    ReferencesEvent,
    Role,
    SendMessageRequest,
    Session,
)

__all__ = [
    "EVENT_TYPES",
    "CacheEntry",
    "ChatHistoryResponse",
    "ChatStatus",
    "ChunkEvent",
    "CreateSessionResponse",
    "HistoryEntry",
    "HistoryItem",
    "Message",
    "ProtocolEvent",
    "Reference",
    "ReferencesEvent",
    "Role",
    "SendMessageRequest",
    "Session",
]
