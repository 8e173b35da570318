"""HTTP client layer for the compliance chat API.

Responsibilities:
    - Bearer-token injection from an external token provider
    - Typed failures for non-2xx responses, with 401/403 kept distinct
    - Pull-based streaming of the NDJSON answer body
    - Session create, list, delete and history endpoints

Holds no conversation state; the conversation package decides what to call.
"""

from compliance_chat.client.config import ClientConfig, get_client_config
from compliance_chat.client.sessions import SessionStore, get_session_store
from compliance_chat.client.transport import (
    ApiClient,
    StaticTokenProvider,
    StreamHandle,
    TokenProvider,
    get_api_client,
)

__all__ = [
    "ApiClient",
    "ClientConfig",
    "SessionStore",
    "StaticTokenProvider",
    "StreamHandle",
    "TokenProvider",
    "get_api_client",
    "get_client_config",
    "get_session_store",
]
