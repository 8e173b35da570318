"""Pytest fixtures and shared test configuration.

Provides reusable fixtures wiring the client to the in-process fake API.

Fixtures:
    - backend: Scriptable fake server state
    - api_client: ApiClient talking to the fake server
    - session_store: SessionStore over api_client
    - kv_store / reconciler: In-memory local cache
    - engine_factory: Builds a ChatEngine for a document scope
"""

from collections.abc import AsyncGenerator, Callable

import pytest
from httpx import ASGITransport

from compliance_chat.client.sessions import SessionStore
from compliance_chat.client.transport import ApiClient, StaticTokenProvider
from compliance_chat.conversation.engine import ChatEngine
from compliance_chat.storage.kv_store import InMemoryStore
from compliance_chat.storage.reconciler import HistoryReconciler
from tests.fake_backend import TEST_TOKEN, FakeChatBackend, create_fake_backend


@pytest.fixture
def backend() -> FakeChatBackend:
    """Fresh fake server state per test."""
    return FakeChatBackend()


@pytest.fixture
def token_provider() -> StaticTokenProvider:
    return StaticTokenProvider(TEST_TOKEN)


@pytest.fixture
async def api_client(
    backend: FakeChatBackend,
    token_provider: StaticTokenProvider,
) -> AsyncGenerator[ApiClient]:
    """Create an ApiClient bound to the fake backend.

    Yields:
        ApiClient using ASGITransport, closed after the test.
    """
    transport = ASGITransport(app=create_fake_backend(backend))
    async with ApiClient(
        base_url="http://test",
        token_provider=token_provider,
        transport=transport,
    ) as client:
        yield client


@pytest.fixture
def session_store(api_client: ApiClient) -> SessionStore:
    return SessionStore(api_client)


@pytest.fixture
def kv_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def reconciler(kv_store: InMemoryStore) -> HistoryReconciler:
    return HistoryReconciler(kv_store, history_limit=10, preview_length=40)


@pytest.fixture
def engine_factory(
    session_store: SessionStore,
    reconciler: HistoryReconciler,
) -> Callable[..., ChatEngine]:
    """Return a builder for engines sharing the fake backend and cache."""

    def build(document_id: str | None = None, **kwargs) -> ChatEngine:
        return ChatEngine(session_store, reconciler, document_id=document_id, **kwargs)

    return build
