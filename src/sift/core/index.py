"""
In-memory inverted index over conversations.

Maps each normalized term to the set of conversations containing it. The
index is rebuilt from the full corpus at startup and on demand; between
rebuilds it only grows.
"""

from collections import defaultdict
from typing import Iterable, Optional

from loguru import logger

from sift.core.tokenizer import tokenize
from sift.models.schema import Conversation


class InvertedIndex:
    """Term -> conversation id postings, at conversation granularity."""

    def __init__(self):
        self._postings: dict[str, set[str]] = defaultdict(set)
        self._documents: set[str] = set()

    def __len__(self) -> int:
        return len(self._postings)

    def __contains__(self, term: str) -> bool:
        return term.lower() in self._postings

    @property
    def document_count(self) -> int:
        return len(self._documents)

    def index_document(self, conversation_id: str, text: str) -> None:
        """
        Add ``conversation_id`` to the postings of every distinct term in ``text``.

        Re-indexing a conversation never removes earlier postings.
        """
        self._documents.add(conversation_id)
        for term in set(tokenize(text)):
            self._postings[term].add(conversation_id)

    def index_conversation(self, conversation: Conversation) -> None:
        self.index_document(conversation.id, conversation.full_text)

    def rebuild(self, conversations: Iterable[Conversation]) -> None:
        """Drop all postings and index ``conversations`` from scratch."""
        self._postings = defaultdict(set)
        self._documents = set()
        for conversation in conversations:
            self.index_conversation(conversation)

        logger.debug(
            f"Inverted index rebuilt: {len(self._postings)} terms, "
            f"{len(self._documents)} conversations"
        )

    def lookup(self, terms: Iterable[str]) -> set[str]:
        """
        Return the conversations that contain every one of ``terms``.

        Args:
            terms: Terms to intersect (normalized before lookup)

        Returns:
            Intersection of the posting sets; empty if ``terms`` is empty or
            any term is unknown
        """
        result: Optional[set[str]] = None
        for term in terms:
            postings = self._postings.get(term.lower())
            if not postings:
                return set()
            result = set(postings) if result is None else result & postings
            if not result:
                return set()
        return result or set()

    def lookup_containing(self, terms: Iterable[str]) -> set[str]:
        """
        Return the conversations with an indexed term containing any of ``terms``.

        Args:
            terms: Terms to match as substrings of indexed terms

        Returns:
            Union of the posting sets of every matching indexed term
        """
        needles = {term.lower() for term in terms}
        result: set[str] = set()
        for indexed_term, postings in self._postings.items():
            if any(needle in indexed_term for needle in needles):
                result |= postings
        return result
