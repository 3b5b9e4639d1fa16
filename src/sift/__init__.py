"""sift: multi-source search over conversations and curated notes."""

__version__ = "0.1.0"
