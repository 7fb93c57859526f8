import threading
from datetime import datetime, timedelta, timezone

import pytest

from playground_runner import ChangeDescriptor, VersionNotFound, VersionStore, diff
from playground_runner.versions import CodeVersion


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(minutes=1)
        return self.now


def _store_with_three() -> VersionStore:
    store = VersionStore(clock=_Clock())
    store.commit("buffer-1", "print(1)", "ana", "Initial snippet", [("code", "First draft")])
    store.commit("buffer-1", "print(1)\nprint(2)", "ana", "Add line")
    store.commit("buffer-1", "print(3)", "ben", "Rewrite", [{"kind": "code", "description": "Rewrote"}])
    return store


def test_commit_appends_and_marks_only_newest_current() -> None:
    store = _store_with_three()
    history = store.history("buffer-1")

    assert [v.id for v in history] == ["v3", "v2", "v1"]
    assert [v.is_current for v in history] == [True, False, False]
    assert history[0].created_at > history[1].created_at > history[2].created_at
    assert history[0].change_descriptors == (ChangeDescriptor("code", "Rewrote"),)
    assert store.current("buffer-1").id == "v3"
    assert store.get("buffer-1", "v1").is_current is False


def test_commit_returns_the_current_version() -> None:
    store = VersionStore()
    version = store.commit("buffer-1", "x = 1", "ana", "Init")

    assert version.is_current
    assert version.id == "v1"
    assert version.created_at.tzinfo is not None


def test_restore_creates_a_new_version_with_old_snapshot() -> None:
    store = _store_with_three()
    restored = store.restore("buffer-1", "v1", author="ana")
    history = store.history("buffer-1")

    assert restored.id == "v4"
    assert restored.code_snapshot == "print(1)"
    assert restored.change_descriptors[0].kind == "restore"
    assert len(history) == 4
    assert history[0] == restored
    assert store.get("buffer-1", "v1").code_snapshot == "print(1)"


def test_restore_unknown_version_raises_without_mutation() -> None:
    store = _store_with_three()

    with pytest.raises(VersionNotFound, match="v42"):
        store.restore("buffer-1", "v42")

    assert len(store.history("buffer-1")) == 3
    assert store.current("buffer-1").id == "v3"


def test_compare_orders_chronologically_by_default() -> None:
    store = _store_with_three()

    expected = diff("print(1)", "print(3)")
    assert store.compare("buffer-1", "v3", "v1") == expected
    assert store.compare("buffer-1", "v1", "v3") == expected
    assert store.compare("buffer-1", "v3", "v1", chronological=False) == diff("print(3)", "print(1)")


def test_compare_unknown_version_raises() -> None:
    store = _store_with_three()

    with pytest.raises(VersionNotFound):
        store.compare("buffer-1", "v1", "v9")


def test_fork_starts_target_history_from_source_version() -> None:
    store = _store_with_three()
    forked = store.fork("buffer-1", "buffer-2", "cam", version_id="v2")

    assert forked.id == "v1"
    assert forked.code_snapshot == "print(1)\nprint(2)"
    assert forked.change_descriptors[0].kind == "fork"
    assert "buffer-1@v2" in forked.message
    assert len(store.history("buffer-1")) == 3
    assert set(store.artifacts()) == {"buffer-1", "buffer-2"}


def test_fork_defaults_to_current_and_rejects_empty_source() -> None:
    store = _store_with_three()
    assert store.fork("buffer-1", "buffer-2", "cam").code_snapshot == "print(3)"

    with pytest.raises(VersionNotFound):
        store.fork("empty", "buffer-3", "cam")


def test_unknown_artifact_has_empty_history() -> None:
    store = VersionStore()

    assert store.history("nothing-yet") == ()
    assert store.current("nothing-yet") is None
    assert store.export_history("nothing-yet") == []
    assert store.artifacts() == ()


def test_artifact_id_must_be_non_empty() -> None:
    with pytest.raises(ValueError, match="artifact_id"):
        VersionStore().commit("", "x", "ana", "Init")


def test_clear_drops_history_and_restarts_numbering() -> None:
    store = _store_with_three()
    store.clear("buffer-1")

    assert store.history("buffer-1") == ()
    assert store.commit("buffer-1", "y", "ana", "Again").id == "v1"


def test_export_then_import_preserves_versions() -> None:
    store = _store_with_three()
    records = store.export_history("buffer-1")

    assert records[0]["id"] == "v3" and records[0]["is_current"] is True

    other = VersionStore()
    imported = other.import_history("buffer-1", records)

    assert imported == store.history("buffer-1")
    assert other.commit("buffer-1", "next", "ana", "After import").id == "v4"


def test_import_rejects_inconsistent_records() -> None:
    records = _store_with_three().export_history("buffer-1")
    store = VersionStore()

    duplicated = records + [records[0]]
    with pytest.raises(ValueError, match="duplicate"):
        store.import_history("buffer-1", duplicated)

    stale_current = [dict(record, is_current=record["id"] == "v1") for record in records]
    with pytest.raises(ValueError, match="current"):
        store.import_history("buffer-1", stale_current)

    with pytest.raises(ValueError, match="Malformed"):
        store.import_history("buffer-1", [{"id": "v1"}])

    assert store.history("buffer-1") == ()


def test_commit_after_import_keeps_ids_unique() -> None:
    base = {"created_at": "2024-01-01T12:00:00+00:00", "author": "ana", "message": "m", "change_descriptors": []}
    store = VersionStore()
    colliding = [
        dict(base, id="v3", sequence=1, code_snapshot="old", is_current=False),
        dict(base, id="x", sequence=2, code_snapshot="mid", is_current=True),
    ]
    with pytest.raises(ValueError, match="v<sequence>"):
        store.import_history("b", colliding)
    assert store.artifacts() == ()

    store.import_history(
        "b",
        [
            dict(base, id="v1", sequence=1, code_snapshot="old", is_current=False),
            dict(base, id="v3", sequence=3, code_snapshot="mid", is_current=True),
        ],
    )
    committed = store.commit("b", "new", "ben", "Edit")

    assert committed.id == "v4"
    assert [version.id for version in store.history("b")] == ["v4", "v3", "v1"]
    assert store.get("b", "v3").code_snapshot == "mid"
    assert store.restore("b", "v1").code_snapshot == "old"


def test_record_without_timezone_is_read_as_utc() -> None:
    version = CodeVersion.from_record(
        {
            "id": "v1",
            "sequence": 1,
            "created_at": "2024-01-01T12:00:00",
            "author": "ana",
            "message": "Init",
            "code_snapshot": "x",
            "is_current": True,
        }
    )

    assert version.created_at.tzinfo is timezone.utc


def test_invalid_change_descriptor_is_rejected() -> None:
    with pytest.raises(ValueError, match="change descriptor"):
        VersionStore().commit("buffer-1", "x", "ana", "Init", ["code"])


def test_concurrent_commits_get_unique_sequential_ids() -> None:
    store = VersionStore()

    def _worker(index: int) -> None:
        for step in range(25):
            store.commit("shared", f"{index}:{step}", f"user-{index}", "edit")

    threads = [threading.Thread(target=_worker, args=(i,)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    history = store.history("shared")
    assert len(history) == 200
    assert {v.id for v in history} == {f"v{n}" for n in range(1, 201)}
    assert sum(v.is_current for v in history) == 1
