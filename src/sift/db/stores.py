"""
Data sources consumed by the search engine.

Defines the collaborator interfaces (conversations, notes, key-value state)
together with in-memory and JSON-file implementations used by the CLI and
the tests.
"""

import json
import math
import os
import tempfile
from collections import Counter
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Iterable, Optional, Protocol

from loguru import logger
from pydantic import ValidationError

from sift.core.tokenizer import tokenize
from sift.models.schema import Conversation, Corpus, Note, NoteType

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ConversationStore(Protocol):
    """Read-only access to the user's conversations."""

    def list_conversations(self) -> list[Conversation]: ...


class NoteStore(Protocol):
    """Read-only access to curated notes."""

    async def recall(self, query: str) -> list[Note]: ...

    def list_by_type(self, note_type: NoteType) -> list[Note]: ...


class KeyValueStore(Protocol):
    """String key-value persistence."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class InMemoryConversationStore:
    """Conversation store backed by a list."""

    def __init__(self, conversations: Optional[Iterable[Conversation]] = None):
        self._conversations = list(conversations or [])

    def list_conversations(self) -> list[Conversation]:
        return list(self._conversations)

    def add(self, conversation: Conversation) -> None:
        self._conversations.append(conversation)


class NoteTermIndex:
    """TF-IDF statistics over note title, content and summary."""

    def __init__(self):
        self.term_frequency: dict[str, dict[str, int]] = {}
        self.word_counts: dict[str, int] = {}

    @property
    def total_documents(self) -> int:
        return len(self.word_counts)

    def index_note(self, note: Note) -> None:
        words = tokenize(f"{note.title} {note.content} {note.summary}")
        self.word_counts[note.id] = len(words)
        for word, count in Counter(words).items():
            self.term_frequency.setdefault(word, {})[note.id] = count

    def tf_idf(self, term: str, note_id: str) -> float:
        postings = self.term_frequency.get(term, {})
        tf = postings.get(note_id)
        word_count = self.word_counts.get(note_id, 0)
        if not tf or not word_count or not postings:
            return 0.0
        return (tf / word_count) * math.log(self.total_documents / len(postings))


class InMemoryNoteStore:
    """
    Note store backed by a dict, with a simple recall ranking.

    ``recall`` merges a substring match over every text field with the top
    TF-IDF scored notes, then orders them by importance with a small bonus for
    notes created in the last day.
    """

    RECALL_TFIDF_LIMIT = 20
    FRESH_NOTE_BONUS = 0.2

    def __init__(self, notes: Optional[Iterable[Note]] = None, clock: Clock = utc_now):
        self.clock = clock
        self._notes: dict[str, Note] = {}
        self._index = NoteTermIndex()
        for note in notes or []:
            self.add(note)

    def __len__(self) -> int:
        return len(self._notes)

    def add(self, note: Note) -> None:
        self._notes[note.id] = note
        self._index.index_note(note)

    def all_notes(self) -> list[Note]:
        return list(self._notes.values())

    def list_by_type(self, note_type: NoteType) -> list[Note]:
        wanted = NoteType(note_type).value
        return [note for note in self._notes.values() if note.note_type == wanted]

    def _keyword_matches(self, query: str) -> list[Note]:
        query_lower = query.lower()
        return [
            note
            for note in self._notes.values()
            if query_lower in note.title.lower()
            or query_lower in note.content.lower()
            or query_lower in note.summary.lower()
            or any(query_lower in keyword.lower() for keyword in note.keywords)
        ]

    def _tf_idf_matches(self, query: str) -> list[Note]:
        scores: dict[str, float] = {}
        for word in query.lower().split():
            for note_id in self._index.term_frequency.get(word, {}):
                scores[note_id] = scores.get(note_id, 0.0) + self._index.tf_idf(
                    word, note_id
                )
        ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
        return [self._notes[note_id] for note_id, _ in ranked[: self.RECALL_TFIDF_LIMIT]]

    async def recall(self, query: str) -> list[Note]:
        """
        Return candidate notes for ``query``.

        Args:
            query: The search query

        Returns:
            Unique notes, most important first
        """
        merged: dict[str, Note] = {}
        for note in self._keyword_matches(query) + self._tf_idf_matches(query):
            merged.setdefault(note.id, note)

        now = self.clock()

        def priority(note: Note) -> float:
            fresh = now - note.created_at < timedelta(days=1)
            return note.importance + (self.FRESH_NOTE_BONUS if fresh else 0.0)

        recalled = sorted(merged.values(), key=priority, reverse=True)
        logger.debug(f"Recalled {len(recalled)} notes for '{query[:50]}'")
        return recalled


class InMemoryKeyValueStore:
    """Key-value store kept in a dict."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileKeyValueStore:
    """
    Key-value store persisted as a single JSON object on disk.

    Writes go to a temporary file that replaces the original, so a crash never
    leaves a half-written state file behind.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read state file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed state file {self.path}")
            return {}
        return data

    def get(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.debug(f"Persisted '{key}' to {self.path}")


def load_corpus(
    path: Path, clock: Clock = utc_now
) -> tuple[InMemoryConversationStore, InMemoryNoteStore]:
    """
    Load a JSON corpus file into in-memory stores.

    Args:
        path: Path to a JSON file with ``conversations`` and ``notes`` arrays
        clock: Source of "now" for note recall ordering

    Returns:
        Tuple of (conversation store, note store)

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is not a valid corpus
    """
    corpus_path = Path(path)
    if not corpus_path.exists():
        raise FileNotFoundError(f"Corpus file not found: {corpus_path}")

    with open(corpus_path, "r", encoding="utf-8") as f:
        raw = f.read()

    try:
        corpus = Corpus.model_validate_json(raw)
    except ValidationError as e:
        raise ValueError(f"Invalid corpus file {corpus_path}: {e}") from e

    logger.success(
        f"Loaded corpus from {corpus_path}: {len(corpus.conversations)} conversations, "
        f"{len(corpus.notes)} notes"
    )
    return (
        InMemoryConversationStore(corpus.conversations),
        InMemoryNoteStore(corpus.notes, clock=clock),
    )
