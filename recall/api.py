"""
Core API for recall.

The Recall class ties together the store directory, its configuration,
the note store and the retrieval engine. All methods block: note edits
and searches are queued on the engine's worker and waited for, so they
never interleave with a running backfill.

Example:
    with Recall() as rc:
        rc.add_note("Buy sourdough starter")
        for result in rc.find("bread"):
            print(result.text, result.score)
"""

import logging
from pathlib import Path
from typing import Any, Optional

from .config import ProviderConfig, StoreConfig, get_default_store_path, load_or_create_config, save_config
from .engine import ProviderState, RetrievalEngine, resolve_provider_name
from .note_store import NoteStore
from .providers import get_registry
from .providers.base import EmbeddingProvider
from .types import Note, SearchResult

logger = logging.getLogger(__name__)


class Recall:
    """
    Semantic note memory.

    Notes are stored immediately without an embedding; embeddings are
    computed by the next search (or an explicit backfill).
    """

    def __init__(
        self,
        store_path: Optional[str | Path] = None,
        config: Optional[StoreConfig] = None,
        note_store: Optional[NoteStore] = None,
        provider: Optional[EmbeddingProvider] = None,
    ) -> None:
        """
        Args:
            store_path: Store directory. Defaults to RECALL_STORE_PATH or ~/.recall
            config: Injected configuration; skips reading recall.toml
            note_store: Injected note store (tests, custom setups)
            provider: Injected embedding provider; skips the registry
        """
        if config is not None:
            self._config = config
            self._store_path = config.path
        else:
            if store_path is not None:
                self._store_path = Path(store_path).expanduser().resolve()
            else:
                self._store_path = get_default_store_path()
            self._config = load_or_create_config(self._store_path)

        # --- Persistent operations log ---
        from .logging_config import configure_ops_log
        self._ops_log_handler = configure_ops_log(self._store_path)

        try:
            self._registry = get_registry()
            if provider is None:
                provider = self._registry.create_embedding(
                    self._config.embedding.name,
                    self._config.embedding.params,
                )

            if note_store is None:
                note_store = NoteStore(self._config.db_path)

            self._engine = RetrievalEngine(
                note_store,
                provider,
                provider_name=self._config.embedding.name,
                registry=self._registry,
            )
        except Exception:
            # Detach the ops log handler opened above
            self.close()
            raise

        logger.debug("Opened store %s (provider %s)", self._store_path, self._config.embedding.name)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def config(self) -> StoreConfig:
        """Public access to store configuration."""
        return self._config

    @property
    def store_path(self) -> Path:
        return self._store_path

    @property
    def engine(self) -> RetrievalEngine:
        return self._engine

    # -------------------------------------------------------------------------
    # Notes
    # -------------------------------------------------------------------------

    def add_note(self, text: str, pinned: bool = False) -> Note:
        """
        Store a new note. Its embedding is computed lazily.

        Raises:
            ValueError: If text is empty
        """
        if not text or not text.strip():
            raise ValueError("Note text must not be empty")
        note = self._engine.submit(self._engine.store.insert, Note(text=text, pinned=pinned)).result()
        logger.info("Added note %s", note.id)
        return note

    def update_note(self, id: int, text: str) -> Optional[Note]:
        """
        Replace a note's text. Clears its embedding.

        Returns:
            The updated note, or None if no note has this id
        """
        if not text or not text.strip():
            raise ValueError("Note text must not be empty")

        def _update():
            note = self._engine.store.get(id)
            if note is None:
                return None
            updated = note.with_text(text)
            self._engine.store.update(updated)
            return updated

        note = self._engine.submit(_update).result()
        if note is not None:
            logger.info("Updated note %s", id)
        return note

    def delete_note(self, id: int) -> bool:
        """Delete a note. Returns False if it did not exist."""
        deleted = self._engine.submit(self._engine.store.delete, id).result()
        if deleted:
            logger.info("Deleted note %s", id)
        return deleted

    def set_pinned(self, id: int, pinned: bool) -> Optional[Note]:
        """Pin or unpin a note. Returns None if no note has this id."""
        def _set():
            note = self._engine.store.get(id)
            if note is None:
                return None
            note.pinned = pinned
            self._engine.store.update(note)
            return note

        return self._engine.submit(_set).result()

    def toggle_pin(self, id: int) -> Optional[Note]:
        """Flip a note's pin state. Returns None if no note has this id."""
        def _toggle():
            note = self._engine.store.get(id)
            if note is None:
                return None
            note.pinned = not note.pinned
            self._engine.store.update(note)
            return note

        return self._engine.submit(_toggle).result()

    def get_note(self, id: int) -> Optional[Note]:
        return self._engine.submit(self._engine.store.get, id).result()

    def list_notes(self) -> list[Note]:
        """All notes, newest first."""
        return self._engine.submit(self._engine.store.all_notes).result()

    # -------------------------------------------------------------------------
    # Retrieval
    # -------------------------------------------------------------------------

    def find(self, query: str, k: Optional[int] = None) -> list[SearchResult]:
        """
        Semantic search: every pinned note, then the k closest others.

        Args:
            query: Search text
            k: Number of unpinned results; defaults to retrieval.top_k

        Returns:
            Results, or an empty list when retrieval is disabled in config
        """
        if not self._config.retrieval.enabled:
            logger.debug("Retrieval disabled; skipping search")
            return []
        if k is None:
            k = self._config.retrieval.top_k
        return self._engine.search(query, k).result()

    def backfill(self) -> int:
        """Embed notes that have no embedding yet. Returns the count computed."""
        return self._engine.backfill_embeddings().result()

    def reindex(self) -> int:
        """Re-embed every note with the current provider."""
        return self._engine.regenerate_all().result()

    def cancel(self) -> None:
        """Stop a running backfill or reindex after the current note."""
        self._engine.cancel_pending()

    # -------------------------------------------------------------------------
    # Provider
    # -------------------------------------------------------------------------

    def set_provider(
        self,
        name: str,
        api_key: Optional[str] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Switch the embedding provider and record it in recall.toml.

        Stored embeddings from the old provider are regenerated by the
        next search. The API key is used for this session only.

        Raises:
            ValueError: Unknown provider name
            ProviderInitError: The new provider failed to initialize
                (config is left unchanged)
        """
        resolved = resolve_provider_name(name)
        self._engine.set_provider(resolved, credentials=api_key, params=params).result()
        self._config.embedding = ProviderConfig(resolved, dict(params or {}))
        save_config(self._config)
        logger.info("Embedding provider set to %s", resolved)

    def status(self) -> dict:
        """Store and provider summary for display."""
        def _counts():
            store = self._engine.store
            return store.count(), store.count_missing_embeddings()

        total, missing = self._engine.submit(_counts).result()
        state = self._engine.state
        return {
            "store": str(self._store_path),
            "provider": self._engine.provider_name,
            "state": state.value,
            "dimension": self._engine.dimension if state == ProviderState.READY else None,
            "notes": total,
            "missing_embeddings": missing,
            "retrieval_enabled": self._config.retrieval.enabled,
            "top_k": self._config.retrieval.top_k,
        }

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Drain queued work, release the provider and close the store."""
        if hasattr(self, "_engine"):
            self._engine.shutdown()

        # Remove ops log handler to avoid handler accumulation
        if getattr(self, "_ops_log_handler", None):
            logging.getLogger("recall").removeHandler(self._ops_log_handler)
            self._ops_log_handler.close()
            self._ops_log_handler = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
