"""
Search history and follow-up query suggestions.
"""

import json
import threading
from typing import Iterable, Optional

from loguru import logger

from sift.db.stores import KeyValueStore
from sift.models.schema import SearchResult

DEFAULT_HISTORY_LIMIT = 20
DEFAULT_HISTORY_KEY = "search_history"
DEFAULT_SUGGESTION_LIMIT = 5


class SearchHistory:
    """
    Most-recent-first list of distinct past queries.

    Updates are serialized with a lock and written through to the key-value
    store under a single key.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
        key: str = DEFAULT_HISTORY_KEY,
    ):
        self.store = store
        self.limit = limit
        self.key = key
        self._entries: list[str] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def load(self) -> list[str]:
        """Restore history from the store, ignoring malformed data."""
        if self.store is None:
            return self.entries

        raw = self.store.get(self.key)
        entries: list[str] = []
        if raw:
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as e:
                logger.warning(f"Discarding unreadable search history: {e}")
                data = []
            if isinstance(data, list):
                for item in data:
                    if isinstance(item, str) and item not in entries:
                        entries.append(item)
            else:
                logger.warning("Discarding search history that is not a list")

        with self._lock:
            self._entries = entries[: self.limit]
        logger.debug(f"Loaded {len(self._entries)} history entries")
        return self.entries

    def record(self, query: str) -> list[str]:
        """
        Move ``query`` to the front of the history.

        Args:
            query: The query that was searched

        Returns:
            The updated history
        """
        with self._lock:
            entries = [entry for entry in self._entries if entry != query]
            entries.insert(0, query)
            self._entries = entries[: self.limit]
            snapshot = list(self._entries)
            if self.store is not None:
                self.store.set(self.key, json.dumps(snapshot))
        return snapshot


def suggest_queries(
    query: str,
    results: Iterable[SearchResult],
    limit: int = DEFAULT_SUGGESTION_LIMIT,
) -> list[str]:
    """
    Derive follow-up queries from the latest results.

    Note types found among the results come first, in the order they appear,
    followed by two time-based variations of the query.
    """
    note_types: list[str] = []
    for result in results:
        if result.note_type is not None and result.note_type not in note_types:
            note_types.append(result.note_type)

    suggestions = [f"Show me all {note_type}s" for note_type in note_types]
    suggestions.append(f"Recent discussions about {query}")
    suggestions.append(f"Earlier conversations about {query}")
    return suggestions[:limit]
