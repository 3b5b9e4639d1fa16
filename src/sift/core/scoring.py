"""
Lexical relevance scoring and match presentation helpers.

All scores produced here are bounded to [0.0, 1.0]. Upstream arithmetic that
yields NaN or infinity is treated as no relevance at all.
"""

import math
import re
from typing import Sequence

from sift.core.tokenizer import query_terms
from sift.models.schema import Note

PHRASE_MATCH_AWARD = 0.5
TERM_MATCH_AWARD = 0.2

TITLE_WEIGHT = 1.5
KEYWORD_BONUS = 0.3
IMPORTANCE_WEIGHT = 0.2

ORIGINAL_QUERY_AWARD = 0.6
EXPANDED_TERM_AWARD = 0.1

SNIPPET_CONTEXT_CHARS = 50
SNIPPET_FALLBACK_CHARS = 100
ELLIPSIS = "..."


def clamp_score(score: float) -> float:
    """Clamp ``score`` to [0.0, 1.0], mapping non-finite values to 0.0."""
    if score is None or not math.isfinite(score):
        return 0.0
    return max(0.0, min(score, 1.0))


def lexical_score(query: str, text: str) -> float:
    """
    Score how well ``text`` matches ``query`` by term and phrase overlap.

    Each query term found in the text earns 0.5 when the whole query also
    appears verbatim, otherwise 0.2. The sum is scaled by the fraction of
    query terms that matched.

    Args:
        query: The search query
        text: The text to score

    Returns:
        Relevance score between 0.0 and 1.0
    """
    terms = query_terms(query)
    if not terms:
        return 0.0

    text_lower = text.lower()
    phrase_match = query.lower() in text_lower
    award = PHRASE_MATCH_AWARD if phrase_match else TERM_MATCH_AWARD

    matched = sum(1 for term in terms if term in text_lower)
    score = matched * award * (matched / len(terms))
    return clamp_score(score)


def note_score(
    query: str,
    note: Note,
    title_weight: float = TITLE_WEIGHT,
    keyword_bonus: float = KEYWORD_BONUS,
    importance_weight: float = IMPORTANCE_WEIGHT,
) -> float:
    """
    Score a curated note against ``query``.

    Title matches weigh more than body matches, keyword tags containing the
    query add a flat bonus, and curated importance adds a small prior.
    """
    query_lower = query.lower()
    title = lexical_score(query, note.title) * title_weight
    content = lexical_score(query, note.content)
    keywords = (
        keyword_bonus
        if any(query_lower in keyword.lower() for keyword in note.keywords)
        else 0.0
    )
    importance = note.importance * importance_weight
    return clamp_score(title + content + keywords + importance)


def semantic_score(text: str, query: str, expanded_terms: Sequence[str]) -> float:
    """
    Score ``text`` against the original query plus AI-expanded terms.

    The literal query earns 0.6 and each expanded term found earns 0.1; the
    total is divided by the number of expanded terms plus one.
    """
    text_lower = text.lower()
    score = 0.0
    if query.lower() in text_lower:
        score += ORIGINAL_QUERY_AWARD
    for term in expanded_terms:
        if term.lower() in text_lower:
            score += EXPANDED_TERM_AWARD
    return clamp_score(score / (len(expanded_terms) + 1))


def extract_snippet(
    text: str,
    query: str,
    context_chars: int = SNIPPET_CONTEXT_CHARS,
    fallback_chars: int = SNIPPET_FALLBACK_CHARS,
) -> str:
    """
    Excerpt ``text`` around the first case-insensitive occurrence of ``query``.

    Falls back to the head of the text when the query does not occur.
    Truncated sides are marked with an ellipsis.
    """
    match = re.search(re.escape(query), text, re.IGNORECASE) if query else None
    if match:
        start = max(0, match.start() - context_chars)
        end = min(len(text), match.end() + context_chars)
        snippet = text[start:end]
        if start > 0:
            snippet = ELLIPSIS + snippet
        if end < len(text):
            snippet = snippet + ELLIPSIS
        return snippet

    if len(text) > fallback_chars:
        return text[:fallback_chars] + ELLIPSIS
    return text


def find_highlights(text: str, query: str) -> list[str]:
    """Whitespace-delimited query terms that occur anywhere in ``text``."""
    text_lower = text.lower()
    return [term for term in query.split() if term.lower() in text_lower]
