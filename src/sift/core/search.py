"""
Multi-source search over conversations and curated notes.

Runs the conversation, note and semantic retrievers concurrently, then
deduplicates and ranks their candidates into one result list. Records the
query in the search history and derives follow-up suggestions.
"""

import asyncio
from pathlib import Path
from typing import Optional

from loguru import logger

from sift.config import Settings, get_settings
from sift.core.expansion import QueryExpander, ReasoningClient
from sift.core.history import SearchHistory, suggest_queries
from sift.core.index import InvertedIndex
from sift.core.ranking import rank_results
from sift.core.retrievers import ConversationRetriever, NoteRetriever, SemanticRetriever
from sift.db.stores import (
    Clock,
    ConversationStore,
    JsonFileKeyValueStore,
    KeyValueStore,
    NoteStore,
    load_corpus,
    utc_now,
)
from sift.models.schema import SearchFilters, SearchResult


class SearchEngine:
    """
    Search engine over a personal corpus.

    All data sources, the reasoning service and the clock are injected, so a
    search is reproducible from the corpus, the query, "now" and the
    reasoning service's answer.
    """

    def __init__(
        self,
        conversations: ConversationStore,
        notes: NoteStore,
        reasoning: Optional[ReasoningClient] = None,
        history_store: Optional[KeyValueStore] = None,
        clock: Clock = utc_now,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the engine and build the inverted index.

        Args:
            conversations: Source of conversations and their messages
            notes: Source of curated notes
            reasoning: Reasoning service for query expansion (None disables it)
            history_store: Key-value store for search history (None = in memory only)
            clock: Source of "now" for recency scoring
            settings: Optional settings (uses global settings if not provided)
        """
        self.settings = settings or get_settings()
        self.conversations = conversations
        self.notes = notes
        self.clock = clock
        self.weights = self.settings.ranking_weights()

        self.index = InvertedIndex()
        self.refresh_index()

        expander = None
        if reasoning is not None and self.settings.query_expansion_enabled:
            expander = QueryExpander(reasoning, self.settings.expansion_temperature)
        self.expander = expander

        self.conversation_retriever = ConversationRetriever(
            conversations,
            index=self.index if self.settings.use_index_prefilter else None,
            snippet_context_chars=self.settings.snippet_context_chars,
            snippet_fallback_chars=self.settings.snippet_fallback_chars,
        )
        self.note_retriever = NoteRetriever(
            notes,
            title_weight=self.settings.note_title_weight,
            keyword_bonus=self.settings.note_keyword_bonus,
            importance_weight=self.settings.note_importance_weight,
        )
        self.semantic_retriever = SemanticRetriever(
            conversations,
            expander,
            threshold=self.settings.semantic_threshold,
            snippet_context_chars=self.settings.snippet_context_chars,
            snippet_fallback_chars=self.settings.snippet_fallback_chars,
        )

        self.history = SearchHistory(
            history_store,
            limit=self.settings.history_limit,
            key=self.settings.history_key,
        )
        self.history.load()

        self.last_results: list[SearchResult] = []
        self.suggested_queries: list[str] = []
        self._generation = 0
        self._published_generation = 0
        self._in_flight = 0

        logger.debug(
            f"SearchEngine initialized (expansion={'on' if expander else 'off'}, "
            f"prefilter={'on' if self.settings.use_index_prefilter else 'off'})"
        )

    @property
    def is_searching(self) -> bool:
        """Whether any search on this engine is still running."""
        return self._in_flight > 0

    def _publish(
        self, generation: int, results: list[SearchResult], suggestions: list[str]
    ) -> bool:
        # An older search finishing late must not replace a newer one's results
        if generation < self._published_generation:
            return False
        self._published_generation = generation
        self.last_results = results
        self.suggested_queries = suggestions
        return True

    def refresh_index(self) -> None:
        """Rebuild the inverted index from the current conversations."""
        self.index.rebuild(self.conversations.list_conversations())

    async def _retrieve_conversations(
        self, query: str, filters: SearchFilters
    ) -> list[SearchResult]:
        return self.conversation_retriever.retrieve(query, filters)

    async def search(
        self, query: str, filters: Optional[SearchFilters] = None
    ) -> list[SearchResult]:
        """
        Search conversations and notes for ``query``.

        The three retrievers run concurrently. Cancelling the returned
        coroutine cancels the in-flight query expansion and leaves the last
        published results untouched. When searches overlap, a search that
        finishes after a newer one returns its results without publishing them.

        Args:
            query: The search query (surrounding whitespace is ignored)
            filters: Optional filters (defaults use the configured score floor)

        Returns:
            Ranked results, best first; empty for a blank query
        """
        self._generation += 1
        generation = self._generation

        query = query.strip()
        if not query:
            self._publish(generation, [], [])
            return []

        if filters is None:
            filters = SearchFilters(min_relevance=self.settings.min_relevance)

        logger.info(f"Searching for '{query[:100]}'")
        self._in_flight += 1
        try:
            self.history.record(query)

            conversation_results, note_results, semantic_results = await asyncio.gather(
                self._retrieve_conversations(query, filters),
                self.note_retriever.retrieve(query, filters),
                self.semantic_retriever.retrieve(query, filters),
            )

            ranked = rank_results(
                conversation_results + note_results + semantic_results,
                query,
                self.clock(),
                self.weights,
            )
            suggestions = suggest_queries(
                query, ranked, limit=self.settings.suggestion_limit
            )
        finally:
            self._in_flight -= 1

        if not self._publish(generation, ranked, suggestions):
            logger.debug(f"Search for '{query[:100]}' superseded, results not published")

        logger.info(
            f"Search complete: {len(ranked)} results "
            f"(conversations={len(conversation_results)}, notes={len(note_results)}, "
            f"semantic={len(semantic_results)})"
        )
        return ranked

    def get_history(self) -> list[str]:
        return self.history.entries

    def get_suggestions(self) -> list[str]:
        return list(self.suggested_queries)


def create_engine(
    settings: Optional[Settings] = None,
    corpus_path: Optional[Path] = None,
    use_expansion: bool = True,
) -> SearchEngine:
    """
    Build a search engine from the configured corpus and state files.

    Args:
        settings: Optional settings (uses global settings if not provided)
        corpus_path: Optional corpus file overriding the configured one
        use_expansion: Whether to call Claude for query expansion

    Returns:
        A ready-to-use SearchEngine
    """
    settings = settings or get_settings()
    conversations, notes = load_corpus(corpus_path or settings.corpus_path)

    reasoning = None
    if use_expansion and settings.query_expansion_enabled:
        from sift.llm.client import ClaudeClient

        reasoning = ClaudeClient(
            api_key=settings.anthropic_api_key,
            model=settings.llm_model,
            max_tokens=settings.llm_max_tokens,
        )

    return SearchEngine(
        conversations,
        notes,
        reasoning=reasoning,
        history_store=JsonFileKeyValueStore(settings.state_path),
        settings=settings,
    )
