"""
Unit tests for MemoryStore (SQLite persistence of memories).

Tests:
- upsert(): insert, dedup on (owner, content), field refresh
- find_active() / list_for(): expiry exclusion, ordering
- bump_salience(): clamping
- delete_all_for() / purge_expired(): lifecycle
"""

import threading
import time

import pytest

from rag_memory.memory.schemas import MemorySource, RawFact
from rag_memory.memory.store import MemoryStore


# ============================================================================
# Upsert
# ============================================================================

def test_upsert_inserts_new_memory(store):
    fact = RawFact(kind="profile", content="Works as a nurse at the city hospital", tags=["work"], salience=0.8)
    memory = store.upsert("u1", fact, embedding=[0.1, 0.2, 0.3])

    assert memory.id.startswith("mem_")
    assert memory.owner == "u1"
    assert memory.kind == "profile"
    assert memory.tags == ["work"]
    assert memory.salience == pytest.approx(0.8)
    assert memory.embedding == pytest.approx([0.1, 0.2, 0.3])
    assert memory.created_at == memory.updated_at


def test_upsert_defaults_salience(tmp_path):
    with MemoryStore(tmp_path / "m.db", default_salience=0.65) as store:
        memory = store.upsert("u1", RawFact(content="Prefers tea over coffee"), embedding=[1.0])
        assert memory.salience == pytest.approx(0.65)


def test_upsert_same_content_updates_in_place(store):
    first = store.upsert(
        "u1",
        RawFact(kind="fact", content="Plays the cello", tags=["music"], salience=0.9),
        embedding=[1.0, 0.0],
    )
    time.sleep(0.01)
    second = store.upsert(
        "u1",
        RawFact(
            kind="preference",
            content="Plays the cello",
            tags=["hobby"],
            salience=0.6,
            source=MemorySource(origin="conversation", ref_id="conv_2"),
        ),
        embedding=[0.0, 1.0],
    )

    assert store.count("u1") == 1
    assert second.id == first.id
    assert second.embedding == pytest.approx([0.0, 1.0])
    assert second.tags == ["hobby"]
    assert second.kind == "preference"
    assert second.source.ref_id == "conv_2"
    assert second.updated_at > first.updated_at
    assert second.created_at == first.created_at
    # Salience is a usage signal, not overwritten by re-extraction
    assert second.salience == pytest.approx(0.9)


def test_same_content_different_owner_is_separate(store):
    store.upsert("u1", RawFact(content="Lives in Lisbon, Portugal"), embedding=[1.0])
    store.upsert("u2", RawFact(content="Lives in Lisbon, Portugal"), embedding=[1.0])
    assert store.count("u1") == 1
    assert store.count("u2") == 1
    assert store.count() == 2


def test_upsert_rejects_empty_content(store):
    with pytest.raises(ValueError):
        store.upsert("u1", RawFact(content="   "), embedding=[1.0])


def test_concurrent_upserts_keep_one_record(store):
    errors = []

    def worker(i):
        try:
            store.upsert("u1", RawFact(content="Runs marathons every spring"), embedding=[float(i), 1.0])
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not errors
    assert store.count("u1") == 1


# ============================================================================
# Reads and expiry
# ============================================================================

def test_find_active_excludes_expired(store, add_memory):
    past = time.time() - 60
    future = time.time() + 3600
    add_memory("u1", "Expired memory about a trip", [1.0], decay_at=past)
    add_memory("u1", "Still valid memory about work", [1.0], decay_at=future)
    add_memory("u1", "Permanent memory about family", [1.0])

    active = store.find_active("u1")
    contents = {m.content for m in active}
    assert contents == {"Still valid memory about work", "Permanent memory about family"}

    assert len(store.list_for("u1", include_expired=True)) == 3


def test_find_active_orders_by_salience(store, add_memory):
    add_memory("u1", "Low salience memory text", [1.0], salience=0.6)
    add_memory("u1", "High salience memory text", [1.0], salience=0.95)
    assert [m.content for m in store.find_active("u1")][0] == "High salience memory text"


def test_get_and_missing(store, add_memory):
    memory = add_memory("u1", "Speaks fluent Portuguese", [1.0])
    assert store.get(memory.id).content == "Speaks fluent Portuguese"
    assert store.get("mem_missing") is None


def test_embedding_can_be_absent(store, add_memory):
    memory = add_memory("u1", "Memory stored without a vector", None)
    assert store.get(memory.id).embedding is None


def test_set_decay_hides_memory(store, add_memory):
    memory = add_memory("u1", "Currently reading a long novel", [1.0])
    assert store.set_decay(memory.id, time.time() - 1)
    assert store.find_active("u1") == []
    assert not store.set_decay("mem_missing", None)


def test_stats_by_kind(store, add_memory):
    add_memory("u1", "Likes spicy Thai food", [1.0], kind="preference", salience=0.8)
    add_memory("u1", "Prefers window seats", [1.0], kind="preference", salience=0.6)
    add_memory("u1", "Building a compiler in Rust", [1.0], kind="project", salience=0.9)

    stats = store.stats("u1")
    assert stats.total == 3
    assert stats.by_kind["preference"].count == 2
    assert stats.by_kind["preference"].avg_salience == pytest.approx(0.7)
    assert stats.by_kind["project"].count == 1
    assert store.stats("nobody").total == 0


# ============================================================================
# Salience
# ============================================================================

def test_bump_salience_clamps_to_one(store, add_memory):
    memory = add_memory("u1", "Volunteers at the animal shelter", [1.0], salience=0.9)
    for _ in range(10):
        store.bump_salience([memory.id], 0.05)
    assert store.get(memory.id).salience == pytest.approx(1.0)


def test_bump_salience_clamps_to_zero(store, add_memory):
    memory = add_memory("u1", "Volunteers at the animal shelter", [1.0], salience=0.1)
    store.bump_salience([memory.id], -0.5)
    assert store.get(memory.id).salience == pytest.approx(0.0)


def test_bump_salience_stamps_updated_at(store, add_memory):
    memory = add_memory("u1", "Collects vintage cameras", [1.0], salience=0.7)
    time.sleep(0.01)
    assert store.bump_salience([memory.id, "mem_missing"], 0.05) == 1
    updated = store.get(memory.id)
    assert updated.salience == pytest.approx(0.75)
    assert updated.updated_at > memory.updated_at


def test_bump_salience_empty_ids(store):
    assert store.bump_salience([], 0.05) == 0


# ============================================================================
# Lifecycle
# ============================================================================

def test_delete_all_for_owner(store, add_memory):
    add_memory("u1", "First memory for user one", [1.0])
    add_memory("u1", "Second memory for user one", [1.0])
    add_memory("u2", "Memory for user two only", [1.0])

    assert store.delete_all_for("u1") == 2
    assert store.count("u1") == 0
    assert store.count("u2") == 1


def test_purge_expired(store, add_memory):
    add_memory("u1", "Expired memory number one", [1.0], decay_at=time.time() - 10)
    add_memory("u2", "Expired memory number two", [1.0], decay_at=time.time() - 10)
    add_memory("u1", "Memory that never expires", [1.0])

    assert store.purge_expired() == 2
    assert store.count() == 1


def test_persistence_after_reopen(tmp_path):
    db_path = tmp_path / "persist.db"
    with MemoryStore(db_path) as s1:
        s1.upsert("u1", RawFact(content="Has two kids and a dog", tags=["family"]), embedding=[0.5, 0.5])

    with MemoryStore(db_path) as s2:
        [memory] = s2.find_active("u1")
        assert memory.tags == ["family"]
        assert memory.embedding == pytest.approx([0.5, 0.5])
