"""Compliance Chat - session engine for chatting with compliance documents.

Combines httpx for streamed HTTP transport, Pydantic for data validation,
and NiceGUI for visualization.

Components:
    - client: HTTP transport, auth header injection and session endpoints
    - streaming: NDJSON decoding of streamed chat answers
    - conversation: Idle/Sending state machine and the async chat engine
    - storage: per-document local cache and recent-session history
    - ui: Web interface for chat interactions
    - models: Message, session and protocol schemas
"""

__version__ = "0.1.0"
