"""
Pydantic models for the searchable corpus and search results.

This module defines the canonical data structures shared by the stores,
the retrievers and the ranker: conversations and their messages, curated
notes, search filters, and the scored results handed back to callers.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC so that all timestamps are comparable."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class NoteType(str, Enum):
    """Kinds of curated knowledge notes."""

    INSIGHT = "insight"
    FACT = "fact"
    IDEA = "idea"
    QUESTION = "question"
    SOLUTION = "solution"
    PATTERN = "pattern"
    CONNECTION = "connection"


class ResultKind(str, Enum):
    """Which retrieval path produced a search result."""

    CONVERSATION = "conversation"
    MEMORY_NODE = "memory_node"
    SEMANTIC_MATCH = "semantic_match"


class Message(BaseModel):
    """A single chat message inside a conversation."""

    id: str = Field(description="Unique message identifier")
    text: str = Field(description="Message text")
    is_user: bool = Field(default=True, description="Whether the user wrote it")
    timestamp: datetime = Field(description="When the message was sent")

    @field_validator("timestamp")
    @classmethod
    def normalize_timezone(cls, value):
        return ensure_utc(value)

    class Config:
        frozen = True


class Conversation(BaseModel):
    """A conversation: a titled, ordered list of messages."""

    id: str = Field(description="Unique conversation identifier")
    title: str = Field(description="Conversation title")
    created_at: datetime = Field(description="When the conversation was started")
    messages: list[Message] = Field(
        default_factory=list, description="Messages in chronological order"
    )

    @field_validator("created_at")
    @classmethod
    def normalize_timezone(cls, value):
        return ensure_utc(value)

    class Config:
        frozen = True

    @property
    def full_text(self) -> str:
        return " ".join(message.text for message in self.messages)


class Note(BaseModel):
    """
    A curated knowledge note distilled from conversations.

    Notes are owned by the note store; the search engine only reads them.
    """

    id: str = Field(description="Unique note identifier")
    title: str = Field(description="Short, curated title")
    content: str = Field(description="Main body of the note")
    summary: str = Field(default="", description="One or two sentence summary")
    keywords: list[str] = Field(
        default_factory=list, description="Keyword tags attached to the note"
    )
    note_type: NoteType = Field(
        default=NoteType.INSIGHT, description="Kind of note (insight, fact, ...)"
    )
    importance: float = Field(
        default=0.5, description="Curated importance", ge=0.0, le=1.0
    )
    created_at: datetime = Field(description="When the note was created")
    source_conversation_id: Optional[str] = Field(
        default=None, description="Conversation the note was extracted from"
    )
    source_message_ids: list[str] = Field(
        default_factory=list, description="Messages the note was extracted from"
    )
    connections: list[str] = Field(
        default_factory=list, description="IDs of connected notes"
    )

    @field_validator("created_at")
    @classmethod
    def normalize_timezone(cls, value):
        return ensure_utc(value)

    class Config:
        frozen = True
        use_enum_values = True


class SearchFilters(BaseModel):
    """Optional constraints applied by the retrievers."""

    start_date: Optional[datetime] = Field(
        default=None, description="Skip conversations created before this instant"
    )
    end_date: Optional[datetime] = Field(
        default=None, description="Skip conversations created after this instant"
    )
    note_types: Optional[list[NoteType]] = Field(
        default=None, description="Only return notes of these types"
    )
    conversation_ids: Optional[list[str]] = Field(
        default=None, description="Only search inside these conversations"
    )
    min_relevance: float = Field(
        default=0.1,
        description="Minimum lexical score for conversation results",
        ge=0.0,
        le=1.0,
    )

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_timezone(cls, value):
        return ensure_utc(value)

    class Config:
        frozen = True
        use_enum_values = True

    def allows_conversation(self, conversation: Conversation) -> bool:
        """Check the date bounds and conversation allow-list."""
        if self.start_date is not None and conversation.created_at < self.start_date:
            return False
        if self.end_date is not None and conversation.created_at > self.end_date:
            return False
        if (
            self.conversation_ids is not None
            and conversation.id not in self.conversation_ids
        ):
            return False
        return True

    def allows_note_type(self, note_type: str) -> bool:
        return self.note_types is None or note_type in self.note_types


class SearchResult(BaseModel):
    """
    A scored search hit.

    Retrievers emit these as candidates; the ranker returns copies carrying the
    final relevance score.
    """

    kind: ResultKind = Field(description="Retrieval path that produced the hit")
    title: str = Field(description="Conversation or note title")
    content: str = Field(description="Full text of the matched message or note")
    snippet: str = Field(description="Short excerpt around the match")
    relevance_score: float = Field(
        description="Relevance score (0.0 to 1.0)", ge=0.0, le=1.0
    )
    source_conversation_id: Optional[str] = Field(
        default=None, description="Owning conversation, if any"
    )
    source_message_id: Optional[str] = Field(
        default=None, description="Matched message (message-origin hits)"
    )
    source_note_id: Optional[str] = Field(
        default=None, description="Matched note (note-origin hits)"
    )
    timestamp: datetime = Field(description="Creation time of the matched item")
    highlights: list[str] = Field(
        default_factory=list, description="Query terms found in the matched text"
    )
    note_type: Optional[NoteType] = Field(
        default=None, description="Note type (note-origin hits only)"
    )

    @field_validator("timestamp")
    @classmethod
    def normalize_timezone(cls, value):
        return ensure_utc(value)

    class Config:
        frozen = True
        use_enum_values = True

    @property
    def dedup_key(self) -> tuple[str, ...]:
        """
        Identity used to collapse duplicate hits across retrievers.

        Conversation and semantic hits on the same message share a key; notes
        are keyed by their own identifier.
        """
        if self.kind == ResultKind.MEMORY_NODE:
            return ("note", self.source_note_id or "")
        return (
            "message",
            self.source_conversation_id or "",
            self.source_message_id or "",
        )


class RankingWeights(BaseModel):
    """Tunable boosts used by the final ranking function."""

    recency_window_days: float = Field(
        default=30.0, description="Age after which the recency boost is zero", gt=0.0
    )
    recency_weight: float = Field(
        default=0.2, description="Maximum recency boost for brand new items"
    )
    note_boost: float = Field(
        default=0.3, description="Boost for curated note results"
    )
    title_match_boost: float = Field(
        default=0.2, description="Boost when the title contains the query"
    )

    class Config:
        frozen = True


class Corpus(BaseModel):
    """Serialized corpus file: conversations plus curated notes."""

    conversations: list[Conversation] = Field(
        default_factory=list, description="All conversations"
    )
    notes: list[Note] = Field(default_factory=list, description="All curated notes")
