"""Tests for the SearchEngine orchestration."""

import asyncio
import json

import pytest

from sift.config import Settings
from sift.core.search import SearchEngine, create_engine
from sift.db.stores import InMemoryConversationStore, InMemoryKeyValueStore
from sift.models.schema import NoteType, ResultKind, SearchFilters

from conftest import (
    NOW,
    BlockingReasoningClient,
    FailingReasoningClient,
    FakeReasoningClient,
    GatedReasoningClient,
    SpyNoteStore,
    make_conversation,
    make_note,
)


def tokyo_note():
    return make_note("n1", "Tokyo Itinerary", "Day one in Shinjuku", NoteType.FACT)


def make_engine(settings, conversations, notes=None, reasoning=None, history=None):
    return SearchEngine(
        conversations,
        notes if notes is not None else SpyNoteStore(),
        reasoning=reasoning,
        history_store=history,
        clock=lambda: NOW,
        settings=settings,
    )


@pytest.mark.asyncio
async def test_finds_trip_message(settings, trip_store):
    engine = make_engine(settings, trip_store)

    results = await engine.search("Tokyo flights")

    assert len(results) == 1
    result = results[0]
    assert result.kind == ResultKind.CONVERSATION
    assert result.relevance_score == pytest.approx(0.4 + (1 - 2 / 30) * 0.2)
    assert "Tokyo" in result.snippet
    assert engine.last_results == results
    assert engine.is_searching is False


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["", "   "])
async def test_blank_query_does_nothing(settings, trip_store, query):
    notes = SpyNoteStore([tokyo_note()])
    client = FakeReasoningClient("journey")
    engine = make_engine(settings, trip_store, notes, client)

    assert await engine.search(query) == []
    assert notes.recall_calls == 0
    assert client.calls == []
    assert engine.get_history() == []
    assert engine.last_results == []


@pytest.mark.asyncio
async def test_failing_reasoning_service_only_drops_semantic_matches(settings, trip_store):
    client = FailingReasoningClient()
    engine = make_engine(settings, trip_store, SpyNoteStore([tokyo_note()]), client)

    results = await engine.search("Tokyo")

    assert client.calls == 1
    kinds = {r.kind for r in results}
    assert kinds == {ResultKind.CONVERSATION, ResultKind.MEMORY_NODE}


@pytest.mark.asyncio
async def test_semantic_duplicate_of_conversation_hit_is_dropped(settings):
    store = InMemoryConversationStore(
        [
            make_conversation(
                "trip",
                "Trip Planning",
                ["The airplane journey to Tokyo was long", "airplane food"],
            )
        ]
    )
    client = FakeReasoningClient("journey, airplane")
    engine = make_engine(settings, store, reasoning=client)

    results = await engine.search("Tokyo")

    assert len(client.calls) == 1
    assert len(results) == 1
    assert results[0].kind == ResultKind.CONVERSATION
    assert results[0].source_message_id == "trip-m0"


@pytest.mark.asyncio
async def test_notes_rank_with_boosts(settings, trip_store):
    engine = make_engine(settings, trip_store, SpyNoteStore([tokyo_note()]))

    results = await engine.search("Tokyo")

    assert [r.kind for r in results] == [ResultKind.MEMORY_NODE, ResultKind.CONVERSATION]
    # 0.75 from the title plus both boosts, clamped
    assert results[0].relevance_score == 1.0
    assert results[0].note_type == "fact"


@pytest.mark.asyncio
async def test_repeated_search_is_idempotent(settings, trip_store):
    client = FakeReasoningClient("flights, travel")
    engine = make_engine(settings, trip_store, SpyNoteStore([tokyo_note()]), client)

    first = await engine.search("Tokyo")
    second = await engine.search("Tokyo")

    assert [r.model_dump() for r in first] == [r.model_dump() for r in second]


@pytest.mark.asyncio
async def test_history_recorded_and_persisted(settings, trip_store):
    store = InMemoryKeyValueStore()
    engine = make_engine(settings, trip_store, history=store)

    for query in ["tokyo", "osaka", " tokyo "]:
        await engine.search(query)

    assert engine.get_history() == ["tokyo", "osaka"]
    assert json.loads(store.get(settings.history_key)) == ["tokyo", "osaka"]

    restored = make_engine(settings, trip_store, history=store)
    assert restored.get_history() == ["tokyo", "osaka"]


@pytest.mark.asyncio
async def test_suggestions_follow_results(settings, trip_store):
    engine = make_engine(settings, trip_store, SpyNoteStore([tokyo_note()]))

    await engine.search("Tokyo")

    assert engine.get_suggestions() == [
        "Show me all facts",
        "Recent discussions about Tokyo",
        "Earlier conversations about Tokyo",
    ]


@pytest.mark.asyncio
async def test_cancellation_reaches_reasoning_service(settings, trip_store):
    client = BlockingReasoningClient()
    engine = make_engine(settings, trip_store, reasoning=client)

    task = asyncio.create_task(engine.search("Tokyo"))
    await client.started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert client.cancelled is True
    assert engine.is_searching is False
    assert engine.last_results == []
    assert engine.get_suggestions() == []


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["Tokyo flights", "Tokyo flights paris", "flight"])
async def test_index_prefilter_keeps_results(trip_store, query):
    store = InMemoryConversationStore(
        trip_store.list_conversations()
        + [make_conversation("hotel", "Hotels", ["Tokyo hotels near the station"])]
    )
    plain = make_engine(Settings(_env_file=None), store)
    pruned = make_engine(Settings(_env_file=None, use_index_prefilter=True), store)

    assert plain.conversation_retriever.index is None
    assert pruned.conversation_retriever.index is pruned.index

    expected = await plain.search(query)
    actual = await pruned.search(query)

    assert [r.model_dump() for r in actual] == [r.model_dump() for r in expected]
    assert [r.source_conversation_id for r in actual] == ["trip"]


@pytest.mark.asyncio
async def test_date_filter_hides_old_conversations(settings):
    store = InMemoryConversationStore(
        [
            make_conversation("old", "Old trip", ["Tokyo in spring"], age_days=90),
            make_conversation("new", "New trip", ["Tokyo in autumn"], age_days=5),
        ]
    )
    engine = make_engine(settings, store)

    results = await engine.search(
        "tokyo", SearchFilters(start_date=NOW.replace(month=5, day=16))
    )

    assert [r.source_conversation_id for r in results] == ["new"]


@pytest.mark.asyncio
async def test_create_engine_from_files(tmp_path):
    corpus = tmp_path / "corpus.json"
    corpus.write_text(
        json.dumps(
            {
                "conversations": [
                    {
                        "id": "trip",
                        "title": "Trip Planning",
                        "created_at": "2025-06-13T12:00:00Z",
                        "messages": [
                            {
                                "id": "m1",
                                "text": "Let's book flights to Tokyo next week",
                                "is_user": True,
                                "timestamp": "2025-06-13T12:00:00Z",
                            }
                        ],
                    }
                ],
                "notes": [],
            }
        ),
        encoding="utf-8",
    )
    settings = Settings(
        _env_file=None,
        corpus_path=corpus,
        state_path=tmp_path / "state.json",
    )

    engine = create_engine(settings, use_expansion=False)
    results = await engine.search("Tokyo flights")

    assert engine.expander is None
    assert [r.source_message_id for r in results] == ["m1"]
    state = json.loads((tmp_path / "state.json").read_text(encoding="utf-8"))
    assert json.loads(state[settings.history_key]) == ["Tokyo flights"]


@pytest.mark.asyncio
async def test_blank_query_clears_previous_suggestions(settings, trip_store):
    engine = make_engine(settings, trip_store, SpyNoteStore([tokyo_note()]))

    await engine.search("Tokyo")
    assert engine.get_suggestions()

    assert await engine.search("  ") == []
    assert engine.last_results == []
    assert engine.get_suggestions() == []


@pytest.mark.asyncio
async def test_older_search_finishing_last_does_not_overwrite_newer(settings, trip_store):
    client = GatedReasoningClient()
    engine = make_engine(settings, trip_store, reasoning=client)

    older = asyncio.create_task(engine.search("Tokyo"))
    newer = asyncio.create_task(engine.search("flights"))
    await client.wait_for_calls(2)
    assert engine.is_searching is True

    client.release('"flights"')
    newer_results = await newer
    assert engine.is_searching is True
    assert engine.last_results == newer_results

    client.release('"Tokyo"')
    older_results = await older

    assert engine.is_searching is False
    assert older_results != newer_results
    assert engine.last_results == newer_results
    assert engine.get_suggestions() == [
        "Recent discussions about flights",
        "Earlier conversations about flights",
    ]
