"""Unit tests for the local cache and recent-session history."""

import asyncio
from collections.abc import Mapping
from pathlib import Path

from compliance_chat.models.schemas import Message, Reference, Role
from compliance_chat.storage.kv_store import InMemoryStore, JsonFileStore
from compliance_chat.storage.reconciler import GENERAL_SCOPE, HistoryReconciler

SCOPE = HistoryReconciler.scope_key("42")


def conversation(*contents: str) -> list[Message]:
    roles = [Role.USER, Role.BOT]
    return [Message(role=roles[i % 2], content=c) for i, c in enumerate(contents)]


class CountingStore(InMemoryStore):
    """In-memory store that counts write calls."""

    def __init__(self) -> None:
        super().__init__()
        self.writes = 0

    def set(self, key: str, value: object) -> None:
        self.writes += 1
        super().set(key, value)

    def set_many(self, items: Mapping[str, object]) -> None:
        self.writes += 1
        super().set_many(items)


class TestScopeKey:
    def test_general_and_document_scopes(self) -> None:
        assert HistoryReconciler.scope_key(None) == GENERAL_SCOPE
        assert HistoryReconciler.scope_key("42") == "document:42"


class TestSaveAndLoad:
    """Tests for the current-session cache."""

    def test_empty_scope(self, reconciler: HistoryReconciler) -> None:
        entry = reconciler.load(SCOPE)

        assert entry.session_id is None
        assert entry.messages == []
        assert entry.history == []

    def test_round_trip_through_fresh_reconciler(self, kv_store: InMemoryStore) -> None:
        messages = conversation("Summarize", "It covers...")
        messages[1] = messages[1].model_copy(
            update={"references": (Reference(document_id="42", file_name="a.pdf", title="A"),)}
        )
        HistoryReconciler(kv_store).save(SCOPE, "session-1", messages)

        entry = HistoryReconciler(kv_store).load(SCOPE)

        assert entry.session_id == "session-1"
        assert entry.messages == messages

    def test_save_overwrites(self, reconciler: HistoryReconciler) -> None:
        reconciler.save(SCOPE, "session-1", conversation("a", "b"))
        reconciler.save(SCOPE, "session-2", [])

        entry = reconciler.load(SCOPE)

        assert entry.session_id == "session-2"
        assert entry.messages == []

    def test_scopes_are_independent(self, reconciler: HistoryReconciler) -> None:
        reconciler.save(SCOPE, "session-1", conversation("a"))
        reconciler.save(GENERAL_SCOPE, "session-9", conversation("z"))

        assert reconciler.load(SCOPE).session_id == "session-1"
        assert reconciler.load(GENERAL_SCOPE).session_id == "session-9"

    def test_store_keys(self, reconciler: HistoryReconciler, kv_store: InMemoryStore) -> None:
        reconciler.save(SCOPE, "session-1", conversation("a"))
        reconciler.archive(SCOPE, "session-1", conversation("a"))

        assert sorted(kv_store.keys()) == [
            "chat:document:42:history",
            "chat:document:42:messages",
            "chat:document:42:session_id",
        ]

    def test_save_is_a_single_write(self) -> None:
        store = CountingStore()

        HistoryReconciler(store).save(SCOPE, "session-1", conversation("a", "b"))

        assert store.writes == 1

    async def test_asave_matches_save(self, kv_store: InMemoryStore) -> None:
        messages = conversation("question", "answer")

        await HistoryReconciler(kv_store).asave(SCOPE, "session-1", messages)

        entry = HistoryReconciler(kv_store).load(SCOPE)
        assert entry.session_id == "session-1"
        assert entry.messages == messages

    async def test_concurrent_asaves_keep_latest_state(self, kv_store: InMemoryStore) -> None:
        reconciler = HistoryReconciler(kv_store)

        await asyncio.gather(
            reconciler.asave(SCOPE, "session-1", conversation("a")),
            reconciler.asave(SCOPE, "session-1", conversation("a", "b")),
        )

        assert [m.content for m in HistoryReconciler(kv_store).load(SCOPE).messages] == ["a", "b"]

    def test_unreadable_messages_are_discarded(self, kv_store: InMemoryStore) -> None:
        kv_store.set("chat:document:42:session_id", "session-1")
        kv_store.set("chat:document:42:messages", [{"role": "alien"}])

        entry = HistoryReconciler(kv_store).load(SCOPE)

        assert entry.session_id == "session-1"
        assert entry.messages == []


class TestArchive:
    """Tests for the recent-session list."""

    def test_empty_session_not_archived(self, reconciler: HistoryReconciler) -> None:
        assert reconciler.archive(SCOPE, "session-1", []) is None
        assert reconciler.history(SCOPE) == []

    def test_newest_first(self, reconciler: HistoryReconciler) -> None:
        reconciler.archive(SCOPE, "session-1", conversation("first"))
        reconciler.archive(SCOPE, "session-2", conversation("second"))

        assert [h.session_id for h in reconciler.history(SCOPE)] == ["session-2", "session-1"]

    def test_deduplicates_by_session_id(self, reconciler: HistoryReconciler) -> None:
        reconciler.archive(SCOPE, "session-1", conversation("old"))
        reconciler.archive(SCOPE, "session-2", conversation("other"))
        reconciler.archive(SCOPE, "session-1", conversation("old", "newer"))

        history = reconciler.history(SCOPE)

        assert [h.session_id for h in history] == ["session-1", "session-2"]
        assert history[0].last_message_preview == "newer"

    def test_bounded_to_limit(self, kv_store: InMemoryStore) -> None:
        reconciler = HistoryReconciler(kv_store, history_limit=3)
        for i in range(5):
            reconciler.archive(SCOPE, f"session-{i}", conversation(f"msg {i}"))

        assert [h.session_id for h in reconciler.history(SCOPE)] == [
            "session-4",
            "session-3",
            "session-2",
        ]

    def test_preview_is_truncated(self, reconciler: HistoryReconciler) -> None:
        entry = reconciler.archive(SCOPE, "session-1", conversation("word " * 40))

        assert len(entry.last_message_preview) <= 40
        assert entry.last_message_preview.endswith("...")

    def test_preview_collapses_whitespace(self, reconciler: HistoryReconciler) -> None:
        entry = reconciler.archive(SCOPE, "session-1", conversation("line one\n\nline   two"))

        assert entry.last_message_preview == "line one line two"


class TestRestoreAndForget:
    """Tests for local restore and removal."""

    def test_restore_from_history(self, reconciler: HistoryReconciler) -> None:
        messages = conversation("a", "b", "c")
        reconciler.archive(SCOPE, "session-1", messages)

        assert reconciler.restore(SCOPE, "session-1") == messages

    def test_restore_current_session(self, reconciler: HistoryReconciler) -> None:
        messages = conversation("a", "b")
        reconciler.save(SCOPE, "session-1", messages)

        assert reconciler.restore(SCOPE, "session-1") == messages

    def test_restore_unknown_returns_none(self, reconciler: HistoryReconciler) -> None:
        assert reconciler.restore(SCOPE, "session-404") is None

    def test_forget_removes_history_and_current(
        self, reconciler: HistoryReconciler, kv_store: InMemoryStore
    ) -> None:
        reconciler.save(SCOPE, "session-1", conversation("a"))
        reconciler.archive(SCOPE, "session-1", conversation("a"))

        reconciler.forget(SCOPE, "session-1")

        assert reconciler.restore(SCOPE, "session-1") is None
        assert reconciler.load(SCOPE).session_id is None
        assert kv_store.get("chat:document:42:session_id") is None


class TestJsonFileStore:
    """Tests for the file-backed store."""

    def test_persists_across_instances(self, tmp_path: Path) -> None:
        path = tmp_path / "cache" / "chat.json"
        JsonFileStore(path).set("key", {"a": [1, 2]})

        assert JsonFileStore(path).get("key") == {"a": [1, 2]}

    def test_set_many_writes_all_keys(self, tmp_path: Path) -> None:
        path = tmp_path / "chat.json"
        JsonFileStore(path).set_many({"a": 1, "b": [2]})

        reopened = JsonFileStore(path)
        assert (reopened.get("a"), reopened.get("b")) == (1, [2])

    def test_delete(self, tmp_path: Path) -> None:
        path = tmp_path / "chat.json"
        store = JsonFileStore(path)
        store.set("key", "value")
        store.delete("key")

        assert JsonFileStore(path).get("key") is None

    def test_corrupt_file_starts_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "chat.json"
        path.write_text("{not json", encoding="utf-8")

        assert JsonFileStore(path).get("key") is None

    def test_reconciler_round_trip_on_disk(self, tmp_path: Path) -> None:
        path = tmp_path / "chat.json"
        messages = conversation("question", "answer")
        HistoryReconciler(JsonFileStore(path)).save(SCOPE, "session-1", messages)

        assert HistoryReconciler(JsonFileStore(path)).load(SCOPE).messages == messages
