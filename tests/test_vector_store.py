"""
In-memory vector store: CRUD, filtered search and sync bookkeeping.
"""

import threading
from datetime import datetime

import numpy as np
import pytest
from pydantic import ValidationError

from knowledge_core.core.errors import DimensionMismatchError
from knowledge_core.vector.index import IVectorStore, LinearScanIndex
from knowledge_core.vector.memory_store import InMemoryVectorStore
from knowledge_core.vector.schemas import SearchOptions, VectorEntryInput, VectorEntryUpdate
from knowledge_core.vector.types import SourceType, VectorEntry


def make_input(content, embedding, source_type=SourceType.DOCUMENT, **metadata):
    return VectorEntryInput(source_type=source_type, content=content, embedding=embedding, metadata=metadata)


@pytest.fixture
def store():
    return InMemoryVectorStore()


@pytest.fixture
def animal_store(store):
    """Cats, Dogs and Code on the three axes."""
    store.add(make_input("Cats", [1.0, 0.0, 0.0], tags=["pets"]))
    store.add(make_input("Dogs", [0.0, 1.0, 0.0], tags=["pets", "outdoor"]))
    store.add(make_input("Code", [0.0, 0.0, 1.0], source_type=SourceType.NOTE, tags=["work"]))
    return store


def contents(results):
    return [result.entry.content for result in results]


def test_store_implements_interface(store):
    assert isinstance(store, IVectorStore)


class TestSearch:

    def test_example_ranking(self, animal_store):
        results = animal_store.search([0.9, 0.1, 0.0])
        assert contents(results) == ["Cats", "Dogs", "Code"]

    def test_example_source_type_filter(self, animal_store):
        results = animal_store.search([0.9, 0.1, 0.0], SearchOptions(source_types=[SourceType.NOTE]))
        assert contents(results) == ["Code"]

    def test_example_threshold(self, animal_store):
        results = animal_store.search([0.9, 0.1, 0.0], SearchOptions(threshold=0.9))
        assert contents(results) == ["Cats"]

    def test_tag_filter_uses_intersection(self, animal_store):
        results = animal_store.search([0.9, 0.1, 0.0], SearchOptions(tags=["outdoor", "work"]))
        assert contents(results) == ["Dogs", "Code"]

    def test_missing_tags_never_match_tag_filter(self, store):
        store.add(make_input("untagged", [1.0, 0.0]))
        assert store.search([1.0, 0.0], SearchOptions(tags=["anything"])) == []

    def test_string_tags_match_as_one_tag(self, store):
        store.add(make_input("pets note", [1.0, 0.0], tags="pets"))

        assert store.search([1.0, 0.0], SearchOptions(tags=["p"])) == []
        assert contents(store.search([1.0, 0.0], SearchOptions(tags=["pets"]))) == ["pets note"]

    def test_source_type_and_tag_filters_combine(self, animal_store):
        options = SearchOptions(source_types=[SourceType.DOCUMENT], tags=["work"])
        assert animal_store.search([0.0, 0.0, 1.0], options) == []

    def test_score_and_distance(self, animal_store):
        results = animal_store.search([1.0, 0.0, 0.0])
        assert results[0].score == pytest.approx(1.0)
        assert results[0].distance == pytest.approx(0.0)
        assert results[1].score == pytest.approx(0.0)
        assert results[1].distance == pytest.approx(1.0)

    @pytest.mark.parametrize("limit", [0, 1, 2, 5])
    def test_never_exceeds_limit(self, animal_store, limit):
        results = animal_store.search([0.5, 0.3, 0.2], SearchOptions(limit=limit))
        assert len(results) == min(limit, 3)

    def test_never_returns_scores_below_threshold(self, store):
        rng = np.random.default_rng(7)
        for i in range(50):
            store.add(make_input(f"entry {i}", rng.normal(size=8)))

        results = store.search(rng.normal(size=8), SearchOptions(limit=50, threshold=0.2))

        assert all(result.score >= 0.2 for result in results)
        scores = [result.score for result in results]
        assert scores == sorted(scores, reverse=True)

    def test_default_limit_is_ten(self, store):
        for i in range(15):
            store.add(make_input(f"entry {i}", [1.0, float(i)]))
        assert len(store.search([1.0, 1.0])) == 10

    def test_ties_keep_insertion_order(self, store):
        for name in ["first", "second", "third"]:
            store.add(make_input(name, [1.0, 1.0]))

        first = contents(store.search([2.0, 2.0]))
        second = contents(store.search([2.0, 2.0]))
        assert first == ["first", "second", "third"]
        assert first == second

    def test_zero_query_scores_everything_zero(self, animal_store):
        results = animal_store.search([0.0, 0.0, 0.0])
        assert [result.score for result in results] == [0.0, 0.0, 0.0]

    def test_empty_store_returns_nothing(self, store):
        assert store.search([1.0, 0.0]) == []

    def test_query_dimension_mismatch_raises(self, animal_store):
        with pytest.raises(DimensionMismatchError):
            animal_store.search([1.0, 0.0])

    def test_negative_limit_rejected(self):
        with pytest.raises(ValidationError):
            SearchOptions(limit=-1)


class TestCrud:

    def test_add_then_get_returns_equal_entry(self, store):
        entry = store.add(make_input("hello", [0.1, 0.2, 0.3], title="Greeting"))

        fetched = store.get(entry.id)
        assert fetched == entry
        assert fetched.content == "hello"
        assert fetched.source_type == SourceType.DOCUMENT
        assert fetched.embedding == [0.1, 0.2, 0.3]
        assert fetched.metadata == {"title": "Greeting"}
        assert fetched.created_at == fetched.updated_at

    def test_add_generates_unique_ids(self, store):
        ids = {store.add(make_input(str(i), [1.0, 0.0])).id for i in range(20)}
        assert len(ids) == 20

    def test_add_accepts_numpy_embedding(self, store):
        entry = store.add(make_input("array", np.array([0.5, 0.5])))
        assert entry.embedding == [0.5, 0.5]

    def test_add_copies_metadata(self, store):
        metadata = {"tags": ["a"]}
        entry = store.add(VectorEntryInput(source_type=SourceType.NOTE, content="x", embedding=[1.0], metadata=metadata))
        metadata["tags"].append("b")
        assert store.get(entry.id).metadata == {"tags": ["a"]}

    def test_add_dimension_mismatch_raises(self, store):
        store.add(make_input("three", [1.0, 0.0, 0.0]))
        with pytest.raises(DimensionMismatchError):
            store.add(make_input("two", [1.0, 0.0]))
        assert len(store) == 1

    def test_configured_dimension_enforced_on_first_add(self):
        store = InMemoryVectorStore(dimension=4)
        with pytest.raises(DimensionMismatchError):
            store.add(make_input("short", [1.0, 0.0]))

    def test_empty_embedding_rejected(self):
        with pytest.raises(ValidationError):
            make_input("empty", [])

    def test_get_missing_returns_none(self, store):
        assert store.get("missing") is None

    def test_delete(self, animal_store):
        entry = animal_store.get_all()[0]
        assert animal_store.delete(entry.id) is True
        assert animal_store.get(entry.id) is None
        assert "Cats" not in contents(animal_store.search([1.0, 0.0, 0.0]))

    def test_delete_is_idempotent(self, animal_store):
        entry = animal_store.get_all()[0]
        animal_store.delete(entry.id)
        total = animal_store.get_stats().total_entries

        assert animal_store.delete(entry.id) is False
        assert animal_store.get_stats().total_entries == total

    def test_delete_missing_does_not_dirty(self, store):
        store.sync()
        assert store.delete("missing") is False
        assert store.get_stats().is_synced is True

    def test_update_merges_metadata(self, store):
        entry = store.add(make_input("doc", [1.0, 0.0], title="Old", language="en"))

        updated = store.update(entry.id, VectorEntryUpdate(metadata={"title": "New", "tags": ["x"]}))

        assert updated.metadata == {"title": "New", "language": "en", "tags": ["x"]}
        assert updated.id == entry.id
        assert updated.created_at == entry.created_at
        assert updated.updated_at >= entry.updated_at
        assert updated.content == "doc"

    def test_string_tags_stored_as_list(self, store):
        entry = store.add(make_input("doc", [1.0, 0.0], tags="pets"))

        assert entry.metadata["tags"] == ["pets"]
        assert entry.tags == frozenset({"pets"})

    def test_update_string_tags_stored_as_list(self, store):
        entry = store.add(make_input("doc", [1.0, 0.0], tags=["old"]))

        updated = store.update(entry.id, VectorEntryUpdate(metadata={"tags": "new"}))

        assert updated.tags == frozenset({"new"})

    @pytest.mark.parametrize("tags", [42, ["ok", 7], {"nested": "dict"}])
    def test_non_string_tags_rejected(self, tags):
        with pytest.raises(ValidationError):
            make_input("doc", [1.0, 0.0], tags=tags)
        with pytest.raises(ValidationError):
            VectorEntryUpdate(metadata={"tags": tags})

    def test_entry_with_raw_string_tags(self):
        now = datetime.now()
        entry = VectorEntry(id="e1", source_type=SourceType.NOTE, content="doc", embedding=[1.0],
                            metadata={"tags": "pets"}, created_at=now, updated_at=now)
        assert entry.tags == frozenset({"pets"})

    def test_update_replaces_fields(self, store):
        entry = store.add(make_input("old", [1.0, 0.0]))

        updated = store.update(entry.id, VectorEntryUpdate(
            content="new", source_type=SourceType.WEB, embedding=[0.0, 1.0],
        ))

        assert updated.content == "new"
        assert updated.source_type == SourceType.WEB
        assert store.get(entry.id) == updated
        # Search sees the new embedding
        assert store.search([0.0, 1.0])[0].score == pytest.approx(1.0)

    def test_update_embedding_dimension_checked(self, store):
        entry = store.add(make_input("a", [1.0, 0.0]))
        store.add(make_input("b", [0.0, 1.0]))
        with pytest.raises(DimensionMismatchError):
            store.update(entry.id, VectorEntryUpdate(embedding=[1.0, 0.0, 0.0]))

    def test_update_only_entry_may_change_dimension(self, store):
        entry = store.add(make_input("alone", [1.0, 0.0]))
        updated = store.update(entry.id, VectorEntryUpdate(embedding=[1.0, 0.0, 0.0]))
        assert len(updated.embedding) == 3

    def test_update_missing_returns_none(self, store):
        assert store.update("missing", VectorEntryUpdate(content="x")) is None

    def test_entries_are_immutable(self, store):
        entry = store.add(make_input("frozen", [1.0]))
        with pytest.raises(AttributeError):
            entry.content = "changed"

    def test_get_all_in_insertion_order(self, animal_store):
        assert [entry.content for entry in animal_store.get_all()] == ["Cats", "Dogs", "Code"]

    def test_clear(self, animal_store):
        animal_store.clear()
        assert animal_store.get_all() == []
        assert animal_store.search([1.0, 0.0, 0.0]) == []


class TestStatsAndSync:

    def test_stats_zero_filled_per_type(self, animal_store):
        stats = animal_store.get_stats()

        assert stats.total_entries == 3
        assert set(stats.entries_by_type) == set(SourceType)
        assert stats.entries_by_type[SourceType.DOCUMENT] == 2
        assert stats.entries_by_type[SourceType.NOTE] == 1
        assert stats.entries_by_type[SourceType.IMAGE] == 0

    def test_new_store_is_synced(self, store):
        stats = store.get_stats()
        assert stats.is_synced is True
        assert stats.last_synced_at is None

    def test_sync_sets_timestamp(self, animal_store):
        assert animal_store.get_stats().is_synced is False
        animal_store.sync()
        stats = animal_store.get_stats()
        assert stats.is_synced is True
        assert stats.last_synced_at is not None
        assert animal_store.has_pending_changes() is False

    @pytest.mark.parametrize("mutation", ["add", "delete", "update", "clear"])
    def test_mutations_unsync(self, animal_store, mutation):
        entry_id = animal_store.get_all()[0].id
        animal_store.sync()

        if mutation == "add":
            animal_store.add(make_input("new", [1.0, 1.0, 1.0]))
        elif mutation == "delete":
            animal_store.delete(entry_id)
        elif mutation == "update":
            animal_store.update(entry_id, VectorEntryUpdate(content="changed"))
        else:
            animal_store.clear()

        assert animal_store.get_stats().is_synced is False
        assert animal_store.has_pending_changes() is True

    def test_load_entries_replaces_collection_and_clears_dirty(self, animal_store):
        snapshot = animal_store.get_all()[:2]
        animal_store.add(make_input("extra", [1.0, 1.0, 1.0]))

        animal_store.load_entries(snapshot)

        assert animal_store.get_all() == snapshot
        assert animal_store.get_stats().is_synced is True
        assert contents(animal_store.search([1.0, 0.0, 0.0])) == ["Cats", "Dogs"]

    def test_load_entries_rejects_mixed_dimensions(self, store):
        entries = [
            VectorEntry(id="a", source_type=SourceType.NOTE, content="a", embedding=[1.0, 0.0],
                        metadata={}, created_at=None, updated_at=None),
            VectorEntry(id="b", source_type=SourceType.NOTE, content="b", embedding=[1.0],
                        metadata={}, created_at=None, updated_at=None),
        ]
        with pytest.raises(DimensionMismatchError):
            store.load_entries(entries)
        assert len(store) == 0


class TestLinearScanIndex:

    def test_rank_orders_and_limits(self):
        index = LinearScanIndex()
        index.add("x", [1.0, 0.0])
        index.add("y", [0.6, 0.8])
        index.add("z", [0.0, 1.0])

        ranked = index.rank([1.0, 0.0], ["x", "y", "z"], threshold=0.0, limit=2)

        assert [entry_id for entry_id, _ in ranked] == ["x", "y"]
        assert ranked[1][1] == pytest.approx(0.6)

    def test_rank_restricted_to_candidates(self):
        index = LinearScanIndex()
        index.add("x", [1.0, 0.0])
        index.add("y", [0.0, 1.0])
        assert [entry_id for entry_id, _ in index.rank([1.0, 0.0], ["y"], 0.0, 10)] == ["y"]

    def test_remove(self):
        index = LinearScanIndex()
        index.add("x", [1.0])
        index.remove("x")
        assert len(index) == 0


def test_concurrent_adds_are_serialised(store):
    def worker(offset):
        for i in range(50):
            store.add(make_input(f"{offset}-{i}", [1.0, float(i)]))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert store.get_stats().total_entries == 200
    assert len(store.search([1.0, 0.0], SearchOptions(limit=500))) == 200
