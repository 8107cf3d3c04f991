from unittest.mock import MagicMock

import pytest

from knowledge_core.core.errors import EmbeddingProviderError
from knowledge_core.core.search_service import describe_result, semantic_search
from knowledge_core.vector.embeddings import DeterministicHashEmbedding, EmbeddingGateway
from knowledge_core.vector.memory_store import InMemoryVectorStore
from knowledge_core.vector.schemas import SearchOptions, VectorEntryInput
from knowledge_core.vector.types import SourceType


@pytest.fixture
def gateway():
    return EmbeddingGateway(DeterministicHashEmbedding(dimension=64))


@pytest.fixture
def store(gateway):
    store = InMemoryVectorStore()
    for text, source_type in [
        ("How to configure the build", SourceType.DOCUMENT),
        ("Grocery list for the weekend", SourceType.NOTE),
        ("Release notes for version two", SourceType.WEB),
    ]:
        store.add(VectorEntryInput(
            source_type=source_type,
            content=text,
            embedding=gateway.generate_embedding(text),
            metadata={"title": text.split()[0], "chunk_index": 0},
        ))
    return store


def test_exact_text_ranks_first(store, gateway):
    results = semantic_search("Grocery list for the weekend", store, gateway, SearchOptions(threshold=-1.0))

    assert len(results) == 3
    assert results[0].entry.content == "Grocery list for the weekend"
    assert results[0].score == pytest.approx(1.0)


def test_options_are_passed_through(store, gateway):
    options = SearchOptions(limit=5, threshold=-1.0, source_types=[SourceType.WEB])
    results = semantic_search("anything", store, gateway, options)
    assert [result.entry.source_type for result in results] == [SourceType.WEB]


@pytest.mark.parametrize("query", ["", "   ", "\n\t"])
def test_blank_query_returns_nothing(query):
    mock_store = MagicMock()
    mock_gateway = MagicMock()

    assert semantic_search(query, mock_store, mock_gateway) == []
    mock_gateway.generate_embedding.assert_not_called()
    mock_store.search.assert_not_called()


def test_delegates_to_store_with_query_embedding():
    mock_store = MagicMock()
    mock_store.search.return_value = []
    mock_gateway = MagicMock()
    mock_gateway.generate_embedding.return_value = [0.1, 0.2]
    options = SearchOptions(limit=3)

    semantic_search("query", mock_store, mock_gateway, options)

    mock_gateway.generate_embedding.assert_called_once_with("query")
    mock_store.search.assert_called_once_with([0.1, 0.2], options)


def test_embedding_failure_propagates(store):
    broken = MagicMock()
    broken.generate_embedding.side_effect = EmbeddingProviderError("offline")

    with pytest.raises(EmbeddingProviderError):
        semantic_search("query", store, broken)


def test_describe_result(store, gateway):
    result = semantic_search("How to configure the build", store, gateway)[0]

    info = describe_result(result)

    assert info["id"] == result.entry.id
    assert info["source_type"] == "document"
    assert info["title"] == "How"
    assert info["chunk_index"] == 0
    assert info["score"] == pytest.approx(1.0)
    assert info["preview"] == "How to configure the build"
    assert "1.00" in info["explanation"]


def test_describe_result_truncates_preview(gateway):
    store = InMemoryVectorStore()
    text = "word " * 40
    store.add(VectorEntryInput(source_type=SourceType.NOTE, content=text, embedding=gateway.generate_embedding(text)))

    info = describe_result(semantic_search(text, store, gateway)[0])

    assert info["preview"].endswith("...")
    assert len(info["preview"]) == 83
    assert info["title"] is None
