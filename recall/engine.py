"""
Retrieval engine: the only entry point for search and re-embedding.

Every operation runs on a single worker thread, so the active embedding
provider (which need not be thread-safe) sees at most one call at a time
and the note store has exactly one mutator while backfill or search runs.
Public methods enqueue and return a concurrent.futures.Future; queued
operations run in FIFO order.

Stored vectors may lag behind the active provider after a switch. Search
repairs this lazily: missing vectors are backfilled before every query,
and a dimension mismatch triggers one full regeneration and a restart.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from typing import Any, Callable, Optional

from .errors import DimensionMismatch, EmbedError, ProviderInitError, RecallError
from .formatting import format_results_log
from .note_store import NoteStore
from .providers.base import EmbeddingProvider, ProviderRegistry, get_registry
from .types import EmbeddingMethod, Note, SearchResult
from .vectors import cosine_similarity

logger = logging.getLogger(__name__)

# Pinned notes never score below this, however unrelated to the query
PINNED_SCORE_FLOOR = 0.5
# Score for a pinned note with no usable embedding
PINNED_UNEMBEDDED_SCORE = 1.0


class ProviderState(str, Enum):
    """Binding state of the engine's active provider."""
    UNBOUND = "unbound"
    INITIALIZING = "initializing"
    READY = "ready"
    SWITCHING = "switching"


def rank_results(
    query_vector: list[float],
    pinned: list[Note],
    unpinned: list[Note],
    k: int,
) -> list[SearchResult]:
    """
    Score and merge the two candidate tiers.

    Unpinned notes are ranked by cosine similarity and cut to the top k.
    Every pinned note is kept, scored max(cosine, PINNED_SCORE_FLOOR), or
    PINNED_UNEMBEDDED_SCORE when it has no embedding of the query's length
    (search only passes such a vector through if regeneration failed to
    repair it).
    Pinned results come first; both tiers sort descending, and ties keep
    store order.

    Unpinned notes must already have embeddings of the query's length.
    """
    dim = len(query_vector)

    scored = [SearchResult(note, cosine_similarity(query_vector, note.embedding))
              for note in unpinned]
    scored.sort(key=lambda r: r.score, reverse=True)
    top = scored[:min(k, len(scored))]

    pinned_results = []
    for note in pinned:
        if note.embedding is None or len(note.embedding) != dim:
            score = PINNED_UNEMBEDDED_SCORE
        else:
            score = max(cosine_similarity(query_vector, note.embedding), PINNED_SCORE_FLOOR)
        pinned_results.append(SearchResult(note, score))
    pinned_results.sort(key=lambda r: r.score, reverse=True)

    return pinned_results + top


def _check_dimensions(notes: list[Note], dim: int) -> None:
    for note in notes:
        if len(note.embedding) != dim:
            raise DimensionMismatch(expected=dim, found=len(note.embedding))


class RetrievalEngine:
    """
    Orchestrates embedding, backfill and ranking over a NoteStore.

    The engine owns the store and the active provider. The provider is
    initialized lazily by the first operation that needs it, or eagerly
    with initialize().

    Example:
        engine = RetrievalEngine(NoteStore(path), SentenceTransformerEmbedding())
        results = engine.search("bread recipe", k=3).result()
        engine.shutdown()
    """

    def __init__(
        self,
        store: NoteStore,
        provider: EmbeddingProvider,
        provider_name: Optional[str] = None,
        registry: Optional[ProviderRegistry] = None,
    ):
        """
        Args:
            store: Note store; closed by shutdown()
            provider: Initial embedding provider (not yet initialized)
            provider_name: Registry name of the provider, for display
            registry: Registry used by set_provider() to build providers by name
        """
        self._store = store
        self._provider = provider
        self._provider_name = provider_name or getattr(provider, "model_name", type(provider).__name__)
        self._registry = registry
        self._state = ProviderState.UNBOUND
        self._cancel = threading.Event()
        self._closed = False
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="recall-worker")

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ProviderState:
        return self._state

    @property
    def provider_name(self) -> str:
        return self._provider_name

    @property
    def provider(self) -> EmbeddingProvider:
        return self._provider

    @property
    def dimension(self) -> int:
        """Output dimension of the active provider."""
        return self._provider.dimension

    @property
    def store(self) -> NoteStore:
        """The note store. Touch it only from work passed to submit()."""
        return self._store

    # -------------------------------------------------------------------------
    # Public operations (all enqueued on the worker)
    # -------------------------------------------------------------------------

    def initialize(self) -> Future:
        """Initialize the active provider. The future raises ProviderInitError on failure."""
        return self._enqueue("initialize", self._ensure_ready)

    def set_provider(
        self,
        method,
        credentials: Optional[str] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Future:
        """
        Switch the active provider.

        Args:
            method: EmbeddingMethod, registry name, or a provider instance
            credentials: API key for remote providers
            params: Extra constructor parameters for the provider

        The new provider is built immediately (an unknown name raises
        ValueError here), then swapped in on the worker: operations queued
        earlier still use the old provider, later ones use the new one.
        """
        if isinstance(method, (str, EmbeddingMethod)):
            name = resolve_provider_name(method)
            provider_params = dict(params or {})
            if credentials:
                provider_params["api_key"] = credentials
            registry = self._registry or get_registry()
            provider = registry.create_embedding(name, provider_params)
        else:
            provider = method
            name = getattr(provider, "model_name", type(provider).__name__)
        return self._enqueue("set_provider", self._switch_provider, provider, name)

    def backfill_embeddings(self) -> Future:
        """Embed every note that has none. Resolves to the number computed."""
        return self._enqueue("backfill", self._embed_notes, True)

    def regenerate_all(self) -> Future:
        """Re-embed every note with the active provider. Resolves to the number computed."""
        return self._enqueue("regenerate", self._embed_notes, False)

    def search(self, query: str, k: int) -> Future:
        """
        Find the k most similar unpinned notes, plus every pinned note.

        Resolves to a list of SearchResult, pinned first. Raises EmbedError
        if the query cannot be embedded, StoreError if the store fails.

        Raises:
            ValueError: Immediately, for k < 1 or an empty query
        """
        if k < 1:
            raise ValueError(f"k must be >= 1, got {k}")
        if not query or not query.strip():
            raise ValueError("Search query must not be empty")
        return self._enqueue("search", self._search, query, k)

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        """Run arbitrary work (e.g. note CRUD) on the worker, in queue order."""
        return self._enqueue(getattr(fn, "__name__", "task"), fn, *args, **kwargs)

    def cancel_pending(self) -> None:
        """
        Ask the running backfill or regeneration to stop.

        Checked between notes; the pass returns its partial count. The
        request is cleared when the next operation starts.
        """
        self._cancel.set()

    def shutdown(self, wait: bool = True) -> None:
        """Drain the queue, tear down the provider and close the store."""
        if self._closed:
            return
        self._executor.submit(self._teardown)
        self._closed = True
        self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
        return False

    # -------------------------------------------------------------------------
    # Worker-side implementation
    # -------------------------------------------------------------------------

    def _enqueue(self, label: str, fn: Callable, *args, **kwargs) -> Future:
        if self._closed:
            raise RuntimeError("Retrieval engine is shut down")
        return self._executor.submit(self._run, label, fn, *args, **kwargs)

    def _run(self, label: str, fn: Callable, *args, **kwargs):
        self._cancel.clear()
        try:
            return fn(*args, **kwargs)
        except RecallError as e:
            logger.warning("%s failed: %s", label, e)
            raise

    def _ensure_ready(self) -> None:
        if self._state == ProviderState.READY:
            return
        self._state = ProviderState.INITIALIZING
        try:
            self._provider.initialize()
        except ProviderInitError:
            self._state = ProviderState.UNBOUND
            raise
        except Exception as e:
            self._state = ProviderState.UNBOUND
            raise ProviderInitError(
                f"Failed to initialize embedding provider '{self._provider_name}': {e}"
            ) from e
        self._state = ProviderState.READY
        logger.info("Embedding provider %s ready (%dd)", self._provider_name, self._provider.dimension)

    def _switch_provider(self, provider: EmbeddingProvider, name: str) -> None:
        previous = self._provider_name
        self._state = ProviderState.SWITCHING
        try:
            self._provider.shutdown()
        except Exception as e:
            logger.warning("Shutdown of provider %s failed: %s", previous, e)
        self._provider = provider
        self._provider_name = name
        logger.info("Switched embedding provider %s -> %s", previous, name)
        self._ensure_ready()

    def _embed_notes(self, only_missing: bool) -> int:
        """Backfill (only_missing) or regenerate pass. Best-effort per note."""
        self._ensure_ready()
        verb = "Backfill" if only_missing else "Regenerate"
        computed = 0
        failed = 0

        for note in self._store.all_notes():
            if self._cancel.is_set():
                logger.info("%s cancelled after %d notes", verb, computed)
                break
            if only_missing and note.embedding is not None:
                continue
            if not note.text or not note.text.strip():
                continue

            try:
                vector = self._provider.embed(note.text)
            except Exception as e:
                failed += 1
                logger.warning("Failed to embed note %s: %s: %s", note.id, type(e).__name__, e)
                if note.embedding is not None:
                    # Leave it unembedded rather than keep a stale vector
                    note.embedding = None
                    self._store.update(note)
                continue

            note.embedding = vector
            self._store.update(note)
            computed += 1

        if computed or failed:
            logger.info("%s: %d embedded, %d failed", verb, computed, failed)
        return computed

    def _embed_query(self, query: str) -> list[float]:
        try:
            return self._provider.embed(query)
        except EmbedError:
            raise
        except Exception as e:
            raise EmbedError(f"Failed to embed query: {e}") from e

    def _search(self, query: str, k: int) -> list[SearchResult]:
        regenerated = False
        while True:
            self._embed_notes(only_missing=True)
            query_vector = self._embed_query(query)
            dim = len(query_vector)

            pinned = self._store.pinned_notes()
            unpinned = self._store.unpinned_notes_with_embeddings()
            embedded = unpinned + [n for n in pinned if n.embedding is not None]

            try:
                _check_dimensions(embedded, dim)
            except DimensionMismatch as e:
                if not regenerated:
                    logger.info("%s; regenerating all embeddings", e)
                    self._embed_notes(only_missing=False)
                    regenerated = True
                    continue
                stale = [n for n in embedded if len(n.embedding) != dim]
                logger.warning(
                    "%d notes still mismatched after regeneration; "
                    "unpinned ones excluded from results",
                    len(stale),
                )
                unpinned = [n for n in unpinned if len(n.embedding) == dim]

            results = rank_results(query_vector, pinned, unpinned, k)
            logger.debug("%s", format_results_log(results))
            return results

    def _teardown(self) -> None:
        try:
            self._provider.shutdown()
        except Exception as e:
            logger.warning("Shutdown of provider %s failed: %s", self._provider_name, e)
        self._state = ProviderState.UNBOUND
        self._store.close()


def resolve_provider_name(method) -> str:
    """Registry name for an EmbeddingMethod or name; unknown names pass through."""
    try:
        return EmbeddingMethod.parse(method).value
    except ValueError:
        return str(method)
