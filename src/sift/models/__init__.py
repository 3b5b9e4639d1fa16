"""Data models for sift."""

from .schema import (
    Corpus,
    Conversation,
    Message,
    Note,
    NoteType,
    RankingWeights,
    ResultKind,
    SearchFilters,
    SearchResult,
)

__all__ = [
    "Corpus",
    "Conversation",
    "Message",
    "Note",
    "NoteType",
    "RankingWeights",
    "ResultKind",
    "SearchFilters",
    "SearchResult",
]
