"""
Text normalization and tokenization.

Every component that turns free text into searchable terms goes through
``tokenize`` so that identical words always produce identical keys.
"""

import re

# Anything that is not a letter or digit separates tokens.
_TOKEN_SPLIT = re.compile(r"[\W_]+", re.UNICODE)

MIN_TOKEN_LENGTH = 3


def tokenize(text: str) -> list[str]:
    """
    Lowercase ``text`` and split it on whitespace and punctuation.

    Tokens shorter than three characters are discarded. Order of appearance
    is preserved and repeated tokens are kept.

    Args:
        text: Raw text to tokenize

    Returns:
        List of normalized tokens
    """
    if not text:
        return []
    return [
        token
        for token in _TOKEN_SPLIT.split(text.lower())
        if len(token) >= MIN_TOKEN_LENGTH
    ]


def unique_terms(text: str) -> list[str]:
    """Tokenize ``text`` and drop repeats, keeping first-seen order."""
    return list(dict.fromkeys(tokenize(text)))


def query_terms(query: str) -> list[str]:
    """Lowercased whitespace-delimited parts of a search query."""
    return query.lower().split()
