"""
Configuration management for sift.

Loads settings from environment variables with sensible defaults.
"""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

from sift.models.schema import RankingWeights

# Load .env file if it exists
load_dotenv()

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Anthropic API Configuration
    anthropic_api_key: Optional[str] = Field(
        default=None,
        description="Anthropic API key for Claude (query expansion is skipped without it)",
    )
    llm_model: str = Field(
        default="claude-sonnet-4-5-20250929",
        description="Claude model used for query expansion",
    )
    llm_max_tokens: int = Field(
        default=512, description="Maximum tokens in a query expansion response"
    )
    expansion_temperature: float = Field(
        default=0.3, description="Sampling temperature for query expansion", ge=0.0, le=1.0
    )
    query_expansion_enabled: bool = Field(
        default=True, description="Ask Claude for related terms on every search"
    )

    # Retrieval Thresholds
    min_relevance: float = Field(
        default=0.1, description="Default minimum score for conversation hits", ge=0.0, le=1.0
    )
    semantic_threshold: float = Field(
        default=0.15, description="Minimum score for semantic hits", ge=0.0, le=1.0
    )
    use_index_prefilter: bool = Field(
        default=False,
        description="Prune conversations with the inverted index before scoring",
    )

    # Note Scoring
    note_title_weight: float = Field(
        default=1.5, description="Multiplier for title matches on notes"
    )
    note_keyword_bonus: float = Field(
        default=0.3, description="Bonus when a note keyword contains the query"
    )
    note_importance_weight: float = Field(
        default=0.2, description="Multiplier for curated note importance"
    )

    # Final Ranking
    recency_window_days: float = Field(
        default=30.0, description="Age in days after which the recency boost is zero", gt=0.0
    )
    recency_weight: float = Field(
        default=0.2, description="Recency boost for brand new items"
    )
    note_boost: float = Field(
        default=0.3, description="Boost for curated note results"
    )
    title_match_boost: float = Field(
        default=0.2, description="Boost when the result title contains the query"
    )

    # Snippets
    snippet_context_chars: int = Field(
        default=50, description="Characters kept on each side of a match"
    )
    snippet_fallback_chars: int = Field(
        default=100, description="Characters kept when the query is not found"
    )

    # History & Suggestions
    history_limit: int = Field(
        default=20, description="Number of past queries to remember", gt=0
    )
    history_key: str = Field(
        default="search_history",
        description="Key under which search history is persisted",
    )
    suggestion_limit: int = Field(
        default=5, description="Maximum number of follow-up suggestions", gt=0
    )

    # Data Files
    corpus_path: Path = Field(
        default=PROJECT_ROOT / "data" / "corpus.json",
        description="JSON file with conversations and notes",
    )
    state_path: Path = Field(
        default=PROJECT_ROOT / "data" / "state.json",
        description="JSON key-value file used to persist search history",
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_file: Optional[str] = Field(
        default=None, description="Path to log file (None = no file logging)"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra fields in .env

    def ranking_weights(self) -> RankingWeights:
        """Boosts consumed by the final ranking function."""
        return RankingWeights(
            recency_window_days=self.recency_window_days,
            recency_weight=self.recency_weight,
            note_boost=self.note_boost,
            title_match_boost=self.title_match_boost,
        )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings instance.

    Returns:
        Settings: The application settings.

    Raises:
        ValueError: If the environment holds invalid values.
    """
    global _settings
    if _settings is None:
        try:
            _settings = Settings()
        except Exception as e:
            raise ValueError(
                f"Failed to load settings. Check your .env file and environment variables. Error: {e}"
            ) from e
    return _settings


def reload_settings() -> Settings:
    """
    Reload settings from environment variables.

    Useful for testing or when environment variables change.

    Returns:
        Settings: The reloaded settings.
    """
    global _settings
    _settings = None
    return get_settings()
