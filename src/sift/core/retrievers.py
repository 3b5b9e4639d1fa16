"""
Independent retrieval paths over the same query.

Each retriever turns a query into scored candidate ``SearchResult`` objects:
conversation messages by lexical overlap, curated notes recalled by the note
store, and messages matched through AI-expanded terms.
"""

from typing import Optional

from loguru import logger

from sift.core.expansion import QueryExpander
from sift.core.index import InvertedIndex
from sift.core.scoring import (
    IMPORTANCE_WEIGHT,
    KEYWORD_BONUS,
    SNIPPET_CONTEXT_CHARS,
    SNIPPET_FALLBACK_CHARS,
    TITLE_WEIGHT,
    extract_snippet,
    find_highlights,
    lexical_score,
    note_score,
    semantic_score,
)
from sift.core.tokenizer import query_terms, tokenize
from sift.db.stores import ConversationStore, NoteStore
from sift.models.schema import (
    Conversation,
    ResultKind,
    SearchFilters,
    SearchResult,
)


class ConversationRetriever:
    """
    Scores every message of every eligible conversation against the query.

    With an inverted index attached, conversations in which no query term
    occurs are skipped before scoring. Queries with terms the index cannot
    answer (short terms or terms spanning punctuation) are scanned in full.
    """

    def __init__(
        self,
        store: ConversationStore,
        index: Optional[InvertedIndex] = None,
        snippet_context_chars: int = SNIPPET_CONTEXT_CHARS,
        snippet_fallback_chars: int = SNIPPET_FALLBACK_CHARS,
    ):
        self.store = store
        self.index = index
        self.snippet_context_chars = snippet_context_chars
        self.snippet_fallback_chars = snippet_fallback_chars

    def _candidate_conversations(
        self, query: str, filters: SearchFilters
    ) -> list[Conversation]:
        conversations = [
            c for c in self.store.list_conversations() if filters.allows_conversation(c)
        ]
        if self.index is None:
            return conversations

        terms = query_terms(query)
        if not terms or any(tokenize(term) != [term] for term in terms):
            return conversations
        allowed = self.index.lookup_containing(terms)
        pruned = [c for c in conversations if c.id in allowed]
        logger.debug(
            f"Index prefilter kept {len(pruned)}/{len(conversations)} conversations"
        )
        return pruned

    def retrieve(self, query: str, filters: SearchFilters) -> list[SearchResult]:
        """
        Find messages lexically matching ``query``.

        Args:
            query: The search query
            filters: Date bounds, conversation allow-list and score floor

        Returns:
            Candidates above ``filters.min_relevance``, best first
        """
        results = []
        for conversation in self._candidate_conversations(query, filters):
            for message in conversation.messages:
                score = lexical_score(query, message.text)
                if score <= filters.min_relevance:
                    continue
                results.append(
                    SearchResult(
                        kind=ResultKind.CONVERSATION,
                        title=conversation.title,
                        content=message.text,
                        snippet=extract_snippet(
                            message.text,
                            query,
                            self.snippet_context_chars,
                            self.snippet_fallback_chars,
                        ),
                        relevance_score=score,
                        source_conversation_id=conversation.id,
                        source_message_id=message.id,
                        timestamp=message.timestamp,
                        highlights=find_highlights(message.text, query),
                    )
                )

        results.sort(key=lambda r: r.relevance_score, reverse=True)
        logger.debug(f"Conversation retriever: {len(results)} candidates")
        return results


class NoteRetriever:
    """Scores the notes recalled by the note store."""

    def __init__(
        self,
        store: NoteStore,
        title_weight: float = TITLE_WEIGHT,
        keyword_bonus: float = KEYWORD_BONUS,
        importance_weight: float = IMPORTANCE_WEIGHT,
    ):
        self.store = store
        self.title_weight = title_weight
        self.keyword_bonus = keyword_bonus
        self.importance_weight = importance_weight

    async def retrieve(self, query: str, filters: SearchFilters) -> list[SearchResult]:
        """
        Score recalled notes that pass the note type filter.

        A failing note store yields no candidates instead of failing the search.
        """
        try:
            notes = await self.store.recall(query)
        except Exception as e:
            logger.warning(f"Note recall failed, skipping notes: {e}")
            return []

        results = []
        for note in notes:
            if not filters.allows_note_type(note.note_type):
                continue
            results.append(
                SearchResult(
                    kind=ResultKind.MEMORY_NODE,
                    title=note.title,
                    content=note.content,
                    snippet=note.summary,
                    relevance_score=note_score(
                        query,
                        note,
                        self.title_weight,
                        self.keyword_bonus,
                        self.importance_weight,
                    ),
                    source_conversation_id=note.source_conversation_id,
                    source_note_id=note.id,
                    timestamp=note.created_at,
                    highlights=find_highlights(f"{note.title} {note.content}", query),
                    note_type=note.note_type,
                )
            )

        logger.debug(f"Note retriever: {len(results)} candidates")
        return results


class SemanticRetriever:
    """Matches messages against the query plus AI-expanded terms."""

    def __init__(
        self,
        store: ConversationStore,
        expander: Optional[QueryExpander],
        threshold: float = 0.15,
        snippet_context_chars: int = SNIPPET_CONTEXT_CHARS,
        snippet_fallback_chars: int = SNIPPET_FALLBACK_CHARS,
    ):
        self.store = store
        self.expander = expander
        self.threshold = threshold
        self.snippet_context_chars = snippet_context_chars
        self.snippet_fallback_chars = snippet_fallback_chars

    async def retrieve(self, query: str, filters: SearchFilters) -> list[SearchResult]:
        """
        Expand the query and score every eligible message.

        Returns nothing when expansion is disabled or produced no terms.
        """
        if self.expander is None:
            return []

        expanded_terms = await self.expander.expand(query)
        if not expanded_terms:
            logger.debug("Semantic retriever: no expansion, skipping")
            return []

        results = []
        for conversation in self.store.list_conversations():
            if not filters.allows_conversation(conversation):
                continue
            for message in conversation.messages:
                score = semantic_score(message.text, query, expanded_terms)
                if score <= self.threshold:
                    continue
                results.append(
                    SearchResult(
                        kind=ResultKind.SEMANTIC_MATCH,
                        title=f"Semantic match in {conversation.title}",
                        content=message.text,
                        snippet=extract_snippet(
                            message.text,
                            query,
                            self.snippet_context_chars,
                            self.snippet_fallback_chars,
                        ),
                        relevance_score=score,
                        source_conversation_id=conversation.id,
                        source_message_id=message.id,
                        timestamp=message.timestamp,
                        highlights=find_highlights(message.text, query),
                    )
                )

        logger.debug(f"Semantic retriever: {len(results)} candidates")
        return results
