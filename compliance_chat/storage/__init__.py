"""Local persistence of chat sessions.

Responsibilities:
    - Pluggable key-value stores (in-memory, JSON file)
    - Current session id and message log per document scope
    - Bounded, deduplicated list of recent sessions for quick re-entry
"""

from compliance_chat.storage.kv_store import InMemoryStore, JsonFileStore, KeyValueStore
from compliance_chat.storage.reconciler import GENERAL_SCOPE, HistoryReconciler

__all__ = [
    "GENERAL_SCOPE",
    "HistoryReconciler",
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueStore",
]
