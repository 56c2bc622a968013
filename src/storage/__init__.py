"""Storage module for inquiry drafts, history, templates and favorites."""

from .backends import InMemoryStorage, LocalFileStorage, S3Storage, StorageBackend, create_storage
from .draft_repository import (
    DRAFTS_KEY,
    FAVORITES_KEY,
    HISTORY_KEY,
    TEMPLATES_KEY,
    DraftRepository,
)

__all__ = [
    "DraftRepository",
    "StorageBackend",
    "InMemoryStorage",
    "LocalFileStorage",
    "S3Storage",
    "create_storage",
    "HISTORY_KEY",
    "DRAFTS_KEY",
    "TEMPLATES_KEY",
    "FAVORITES_KEY",
]
