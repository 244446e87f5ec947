"""
Recall

A local note store with semantic search. Pinned notes are always returned;
the rest are ranked by cosine similarity to the query.

Quick Start:
    from recall import Recall

    rc = Recall()  # uses ~/.recall/
    rc.add_note("Allergic to penicillin", pinned=True)
    rc.add_note("Sourdough: feed the starter every 12 hours")
    results = rc.find("bread")

CLI Usage:
    recall add "note text"
    recall find "query text"
    recall provider fastembed

Default Store:
    ~/.recall/ (created automatically).
    Override with RECALL_STORE_PATH or an explicit path argument.

Environment Variables:
    RECALL_STORE_PATH      - Override default store location
    RECALL_OPENAI_API_KEY  - API key for the openai provider (or OPENAI_API_KEY)
    RECALL_VERBOSE         - Show model-library output and debug logs

Embedding providers: sentence-transformers, fastembed, openai.
Configuration is persisted in recall.toml within the store directory.
"""

# Configure quiet mode early (before any library imports)
from . import logging_config  # noqa: F401

from .api import Recall
from .engine import ProviderState, RetrievalEngine
from .errors import DimensionMismatch, EmbedError, ProviderInitError, RecallError, StoreError
from .note_store import NoteStore
from .types import EmbeddingMethod, Note, SearchResult

__version__ = "0.1.0"
__all__ = [
    "Recall",
    "RetrievalEngine",
    "ProviderState",
    "NoteStore",
    "Note",
    "SearchResult",
    "EmbeddingMethod",
    "RecallError",
    "ProviderInitError",
    "EmbedError",
    "DimensionMismatch",
    "StoreError",
]
