"""Conversation history persistence."""

from clawloop.store.history import (
    HistoryStore,
    SessionMetadata,
    SessionNotFoundError,
    StoreError,
)

__all__ = [
    "HistoryStore",
    "SessionMetadata",
    "SessionNotFoundError",
    "StoreError",
]
