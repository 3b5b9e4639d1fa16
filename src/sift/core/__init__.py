"""Core functionality: tokenization, indexing, retrieval, ranking and history."""

# Note: Imports removed from __init__ to avoid circular import issues.
# Import directly from submodules instead:
#   from sift.core.search import SearchEngine, create_engine
#   from sift.core.ranking import rank_results

__all__ = []
