"""Data sources: conversation, note and key-value stores."""
