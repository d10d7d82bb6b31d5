import itertools
import threading

import pytest

from app.core.errors import SessionNotFound, StorageFailure
from app.services.sessions import chunk_blob_name


@pytest.mark.parametrize("order", list(itertools.permutations([1, 2, 3])))
def test_assembly_follows_index_order(manager, store, order):
    payload = {1: b"AB", 2: b"CD", 3: b"EF"}
    sid = manager.create_session("letters.txt", 3).id
    for index in order:
        manager.register_chunk(sid, index, payload[index])

    stored = manager.complete(sid)

    assert stored.category == "docs"
    assert store.read("docs", stored.name) == b"ABCDEF"
    assert stored.size == 6


def test_completion_cleans_temp_area(manager, store):
    sid = manager.create_session("photo.png", 2).id
    manager.register_chunk(sid, 1, b"\x89P")
    manager.register_chunk(sid, 2, b"NG")
    stored = manager.complete(sid)

    assert stored.url == f"/uploads/images/{stored.name}"
    assert stored.name.endswith("-photo.png")
    assert store.list_dir("tmp") == []


def test_stored_name_is_sanitized(manager, store):
    sid = manager.create_session("../../evil.pdf", 1).id
    manager.register_chunk(sid, 1, b"%PDF")
    stored = manager.complete(sid)
    assert stored.name.endswith("-evil.pdf")
    assert store.exists("docs", stored.name)


def test_same_name_twice_does_not_collide(manager, store):
    names = set()
    for _ in range(3):
        sid = manager.create_session("dup.txt", 1).id
        manager.register_chunk(sid, 1, b"same")
        names.add(manager.complete(sid).name)
    assert len(names) == 3
    assert len(store.list_dir("docs")) == 3


def test_failed_promotion_keeps_session_retryable(manager, store, monkeypatch):
    sid = manager.create_session("clip.mp4", 2).id
    manager.register_chunk(sid, 1, b"12")
    manager.register_chunk(sid, 2, b"34")

    real_rename = store.rename
    calls = {"n": 0}

    def flaky_rename(src, dst):
        calls["n"] += 1
        if calls["n"] == 1:
            raise StorageFailure("disk full")
        real_rename(src, dst)

    monkeypatch.setattr(store, "rename", flaky_rename)

    with pytest.raises(StorageFailure):
        manager.complete(sid)

    # nothing lost: manifest and both chunks remain, no scratch leftovers
    assert store.exists("tmp", f"{sid}.json")
    assert store.exists("tmp", chunk_blob_name(sid, 1))
    assert store.exists("tmp", chunk_blob_name(sid, 2))
    assert not store.exists("tmp", f"{sid}.assembling")
    assert store.list_dir("videos") == []

    stored = manager.complete(sid)
    assert store.read("videos", stored.name) == b"1234"
    assert store.list_dir("tmp") == []


def test_chunk_after_completion_is_rejected(manager):
    sid = manager.create_session("a.txt", 1).id
    manager.register_chunk(sid, 1, b"x")
    manager.complete(sid)
    with pytest.raises(SessionNotFound):
        manager.register_chunk(sid, 1, b"y")


def test_long_name_completes(manager, store):
    sid = manager.create_session("a" * 246 + ".pdf", 1).id
    manager.register_chunk(sid, 1, b"%PDF")
    stored = manager.complete(sid)
    assert stored.category == "docs"
    assert stored.name.endswith(".pdf")
    assert store.read("docs", stored.name) == b"%PDF"


def test_chunk_cleanup_failure_does_not_fail_completion(manager, store, monkeypatch):
    sid = manager.create_session("clip.mp4", 2).id
    manager.register_chunk(sid, 1, b"12")
    manager.register_chunk(sid, 2, b"34")

    real_delete = store.delete

    def stubborn_delete(directory, name):
        if name == chunk_blob_name(sid, 1):
            raise StorageFailure("device busy")
        real_delete(directory, name)

    monkeypatch.setattr(store, "delete", stubborn_delete)

    stored = manager.complete(sid)

    assert store.read("videos", stored.name) == b"1234"
    assert not store.exists("tmp", f"{sid}.json")
    assert not store.exists("tmp", chunk_blob_name(sid, 2))
    with pytest.raises(SessionNotFound):
        manager.get_status(sid)


def test_chunk_arriving_mid_assembly_waits_then_is_rejected(manager, store, monkeypatch):
    sid = manager.create_session("a.txt", 1).id
    manager.register_chunk(sid, 1, b"original")

    entered = threading.Barrier(2)
    release = threading.Event()
    real_assemble = manager.assembler.assemble

    def slow_assemble(plan):
        entered.wait(timeout=5)
        release.wait(timeout=5)
        return real_assemble(plan)

    monkeypatch.setattr(manager.assembler, "assemble", slow_assemble)

    results = {}

    def run_complete():
        results["stored"] = manager.complete(sid)

    def run_late_chunk():
        try:
            manager.register_chunk(sid, 1, b"late")
        except SessionNotFound as e:
            results["late"] = e

    completer = threading.Thread(target=run_complete)
    completer.start()
    entered.wait(timeout=5)

    late = threading.Thread(target=run_late_chunk)
    late.start()
    late.join(timeout=0.2)
    assert late.is_alive()  # blocked on the session lock

    release.set()
    completer.join(timeout=5)
    late.join(timeout=5)

    assert isinstance(results["late"], SessionNotFound)
    assert store.read("docs", results["stored"].name) == b"original"
