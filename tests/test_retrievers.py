"""Tests for the conversation, note and semantic retrievers."""

import pytest

from sift.core.expansion import QueryExpander
from sift.core.index import InvertedIndex
from sift.core.retrievers import ConversationRetriever, NoteRetriever, SemanticRetriever
from sift.db.stores import InMemoryConversationStore
from sift.models.schema import NoteType, ResultKind, SearchFilters

from conftest import (
    FailingReasoningClient,
    FakeReasoningClient,
    SpyNoteStore,
    days_ago,
    make_conversation,
    make_note,
)


def test_conversation_retriever_finds_trip_message(trip_store):
    results = ConversationRetriever(trip_store).retrieve("Tokyo flights", SearchFilters())

    assert len(results) == 1
    result = results[0]
    assert result.kind == ResultKind.CONVERSATION
    assert result.title == "Trip Planning"
    assert result.relevance_score > 0.1
    assert "Tokyo" in result.snippet
    assert result.highlights == ["Tokyo", "flights"]
    assert result.source_conversation_id == "trip"
    assert result.source_message_id == "trip-m0"


def test_conversation_retriever_applies_date_filter():
    store = InMemoryConversationStore(
        [
            make_conversation("old", "Old trip", ["Tokyo in spring"], age_days=90),
            make_conversation("new", "New trip", ["Tokyo in autumn"], age_days=5),
        ]
    )
    retriever = ConversationRetriever(store)

    recent = retriever.retrieve("tokyo", SearchFilters(start_date=days_ago(30)))
    older = retriever.retrieve("tokyo", SearchFilters(end_date=days_ago(30)))

    assert [r.source_conversation_id for r in recent] == ["new"]
    assert [r.source_conversation_id for r in older] == ["old"]


def test_conversation_retriever_applies_conversation_allow_list():
    store = InMemoryConversationStore(
        [
            make_conversation("a", "A", ["Tokyo notes"]),
            make_conversation("b", "B", ["Tokyo plans"]),
        ]
    )
    results = ConversationRetriever(store).retrieve(
        "tokyo", SearchFilters(conversation_ids=["b"])
    )

    assert [r.source_conversation_id for r in results] == ["b"]


def test_conversation_retriever_respects_min_relevance():
    store = InMemoryConversationStore(
        [make_conversation("a", "A", ["only gamma here"])]
    )
    retriever = ConversationRetriever(store)

    # One of three terms: 0.2 * 1/3 ~= 0.067, below the default floor
    assert retriever.retrieve("alpha beta gamma", SearchFilters()) == []
    assert len(retriever.retrieve("alpha beta gamma", SearchFilters(min_relevance=0.05))) == 1


def test_conversation_retriever_sorts_by_score():
    store = InMemoryConversationStore(
        [
            make_conversation(
                "a", "A", ["flights are booked", "book flights to Tokyo today"]
            )
        ]
    )
    results = ConversationRetriever(store).retrieve("book flights", SearchFilters())

    assert [r.source_message_id for r in results] == ["a-m1", "a-m0"]


def prefilter_store():
    return InMemoryConversationStore(
        [
            make_conversation("a", "A", ["Let's book flights to Tokyo"]),
            make_conversation("b", "B", ["Hotels in Paris"]),
            make_conversation("c", "C", ["Gardening tips"]),
        ]
    )


def test_index_prefilter_skips_conversations_without_any_term():
    store = prefilter_store()
    index = InvertedIndex()
    index.rebuild(store.list_conversations())
    retriever = ConversationRetriever(store, index=index)

    candidates = retriever._candidate_conversations("tokyo paris", SearchFilters())
    assert [c.id for c in candidates] == ["a", "b"]
    assert [c.id for c in retriever._candidate_conversations("flight", SearchFilters())] == ["a"]
    # "to" is too short to be indexed, so every conversation is scanned
    assert len(retriever._candidate_conversations("to tokyo", SearchFilters())) == 3


@pytest.mark.parametrize(
    "query",
    ["tokyo flights", "Tokyo flights paris", "flight", "book flights-tokyo", "to tokyo", "okyo"],
)
def test_index_prefilter_matches_full_scan(query):
    store = prefilter_store()
    index = InvertedIndex()
    index.rebuild(store.list_conversations())
    filters = SearchFilters(min_relevance=0.0)

    full_scan = ConversationRetriever(store).retrieve(query, filters)
    pruned = ConversationRetriever(store, index=index).retrieve(query, filters)

    assert [r.model_dump() for r in pruned] == [r.model_dump() for r in full_scan]
    assert full_scan


@pytest.mark.asyncio
async def test_note_retriever_scores_and_filters_types():
    store = SpyNoteStore(
        [
            make_note("n1", "Tokyo Itinerary", "Day one in Shinjuku", NoteType.FACT),
            make_note("n2", "Tokyo food ideas", "Ramen spots", NoteType.IDEA),
        ]
    )
    retriever = NoteRetriever(store)

    everything = await retriever.retrieve("tokyo", SearchFilters())
    facts_only = await retriever.retrieve(
        "tokyo", SearchFilters(note_types=[NoteType.FACT])
    )

    assert store.recall_calls == 2
    assert {r.source_note_id for r in everything} == {"n1", "n2"}
    assert [r.source_note_id for r in facts_only] == ["n1"]

    fact = facts_only[0]
    assert fact.kind == ResultKind.MEMORY_NODE
    assert fact.note_type == "fact"
    assert fact.relevance_score == pytest.approx(0.75)
    assert fact.snippet == "Day one in Shinjuku"
    assert fact.highlights == ["tokyo"]


@pytest.mark.asyncio
async def test_note_retriever_survives_store_failure():
    class BrokenStore:
        async def recall(self, query):
            raise RuntimeError("store offline")

        def list_by_type(self, note_type):
            return []

    assert await NoteRetriever(BrokenStore()).retrieve("tokyo", SearchFilters()) == []


@pytest.mark.asyncio
async def test_semantic_retriever_uses_expanded_terms():
    store = InMemoryConversationStore(
        [
            make_conversation(
                "trip",
                "Trip Planning",
                ["The airplane journey to Tokyo was long", "airplane food"],
            )
        ]
    )
    client = FakeReasoningClient("journey, airplane, travel")
    retriever = SemanticRetriever(store, QueryExpander(client))

    results = await retriever.retrieve("Tokyo", SearchFilters())

    assert len(client.calls) == 1
    assert len(results) == 1
    result = results[0]
    assert result.kind == ResultKind.SEMANTIC_MATCH
    assert result.title == "Semantic match in Trip Planning"
    assert result.relevance_score == pytest.approx(0.2)


@pytest.mark.asyncio
async def test_semantic_retriever_empty_when_expansion_fails(trip_store):
    client = FailingReasoningClient()
    retriever = SemanticRetriever(trip_store, QueryExpander(client))

    assert await retriever.retrieve("Tokyo", SearchFilters()) == []
    assert client.calls == 1


@pytest.mark.asyncio
async def test_semantic_retriever_disabled_without_expander(trip_store):
    assert await SemanticRetriever(trip_store, None).retrieve("Tokyo", SearchFilters()) == []
