"""
Shared fixtures: a fixed clock, corpus builders and fake reasoning services.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from sift.config import Settings
from sift.db.stores import InMemoryConversationStore, InMemoryNoteStore
from sift.llm.client import NetworkError
from sift.models.schema import Conversation, Message, Note, NoteType

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


def make_conversation(
    conversation_id: str,
    title: str,
    texts: list[str],
    age_days: float = 2.0,
) -> Conversation:
    created = days_ago(age_days)
    return Conversation(
        id=conversation_id,
        title=title,
        created_at=created,
        messages=[
            Message(
                id=f"{conversation_id}-m{i}",
                text=text,
                is_user=i % 2 == 0,
                timestamp=created,
            )
            for i, text in enumerate(texts)
        ],
    )


def make_note(
    note_id: str,
    title: str,
    content: str,
    note_type: NoteType = NoteType.INSIGHT,
    importance: float = 0.0,
    keywords: Optional[list[str]] = None,
    age_days: float = 60.0,
    summary: str = "",
) -> Note:
    return Note(
        id=note_id,
        title=title,
        content=content,
        summary=summary or content[:40],
        keywords=keywords or [],
        note_type=note_type,
        importance=importance,
        created_at=days_ago(age_days),
    )


class FakeReasoningClient:
    """Returns a canned answer and records every call."""

    def __init__(self, answer: str = ""):
        self.answer = answer
        self.calls = []

    async def complete(self, user_prompt, system_prompt, temperature=0.7):
        self.calls.append((user_prompt, system_prompt, temperature))
        return self.answer


class FailingReasoningClient:
    """Always fails like an unreachable provider."""

    def __init__(self):
        self.calls = 0

    async def complete(self, user_prompt, system_prompt, temperature=0.7):
        self.calls += 1
        raise NetworkError("Network error: connection refused")


class BlockingReasoningClient:
    """Never answers; records that it started and whether it was cancelled."""

    def __init__(self):
        self.started = asyncio.Event()
        self.cancelled = False

    async def complete(self, user_prompt, system_prompt, temperature=0.7):
        self.started.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return ""


class GatedReasoningClient:
    """Holds every call until the test releases it by a word of its prompt."""

    def __init__(self, answer: str = ""):
        self.answer = answer
        self.pending = []

    async def complete(self, user_prompt, system_prompt, temperature=0.7):
        gate = asyncio.Event()
        self.pending.append((user_prompt, gate))
        await gate.wait()
        return self.answer

    async def wait_for_calls(self, count: int):
        while len(self.pending) < count:
            await asyncio.sleep(0)

    def release(self, word: str):
        for user_prompt, gate in self.pending:
            if word in user_prompt:
                gate.set()


class SpyNoteStore(InMemoryNoteStore):
    """Note store that counts recall calls."""

    def __init__(self, notes=None):
        super().__init__(notes, clock=lambda: NOW)
        self.recall_calls = 0

    async def recall(self, query):
        self.recall_calls += 1
        return await super().recall(query)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, anthropic_api_key=None)


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def trip_store() -> InMemoryConversationStore:
    return InMemoryConversationStore(
        [
            make_conversation(
                "trip",
                "Trip Planning",
                ["Let's book flights to Tokyo next week"],
                age_days=2,
            )
        ]
    )
