"""
Base provider protocol and registry.

Defines the interface that concrete embedding providers must implement.
Using Protocol for structural subtyping - no explicit inheritance required.
"""

from typing import Protocol, runtime_checkable

from ..errors import ProviderInitError


# -----------------------------------------------------------------------------
# Embedding Generation
# -----------------------------------------------------------------------------

@runtime_checkable
class EmbeddingProvider(Protocol):
    """
    Generates vector embeddings from text.

    The same provider instance must be used for both indexing and querying
    to ensure consistent vectors. Switching providers changes the vector
    dimension; stored vectors are then repaired lazily by the engine.

    Providers are not required to be thread-safe. The retrieval engine
    guarantees at most one call at a time.

    Example implementation:
        class SentenceTransformerEmbedding:
            def __init__(self, model: str = "all-MiniLM-L6-v2"):
                self.model_name = model
                self._model = None

            @property
            def dimension(self) -> int:
                return 384

            def initialize(self) -> None:
                from sentence_transformers import SentenceTransformer
                self._model = SentenceTransformer(self.model_name)

            def embed(self, text: str) -> list[float]:
                return self._model.encode(text).tolist()

            def shutdown(self) -> None:
                self._model = None
    """

    model_name: str

    @property
    def dimension(self) -> int:
        """
        The dimensionality of the embedding vectors.

        Declared up front; local providers may refine it once the model is
        loaded.
        """
        ...

    def initialize(self) -> None:
        """
        Load the model or validate the credential.

        Idempotent: a second call on an initialized provider is a no-op.

        Raises:
            ProviderInitError: If the model, dependency or credential
                is unavailable
        """
        ...

    def embed(self, text: str) -> list[float]:
        """
        Generate an embedding vector for the given text.

        Args:
            text: The text to embed

        Returns:
            A list of floats of length `dimension`

        Raises:
            EmbedError: If this text could not be embedded
        """
        ...

    def shutdown(self) -> None:
        """
        Release model resources and reset the initialized flag.

        Safe to call on a provider that was never initialized.
        """
        ...


# -----------------------------------------------------------------------------
# Provider Registry
# -----------------------------------------------------------------------------

class ProviderRegistry:
    """
    Registry for discovering and instantiating embedding providers.

    Providers are registered by name and instantiated from configuration.
    This allows the store configuration (TOML) to select a backend by name
    rather than branching on it throughout the engine.

    Example:
        registry = ProviderRegistry()
        registry.register_embedding("sentence-transformers", SentenceTransformerEmbedding)
        registry.register_embedding("openai", OpenAIEmbedding)

        # Later, from config:
        provider = registry.create_embedding("openai", {"api_key": "sk-..."})
    """

    def __init__(self):
        self._embedding_providers: dict[str, type] = {}
        self._lazy_loaded = False

    def _ensure_providers_loaded(self) -> None:
        """Lazily import the provider module to trigger registration."""
        if self._lazy_loaded:
            return

        self._lazy_loaded = True

        # Safe to import: heavy model libraries load on initialize(), not here
        from . import embeddings  # noqa: F401

    def register_embedding(self, name: str, provider_class: type) -> None:
        """Register an embedding provider class."""
        self._embedding_providers[name] = provider_class

    def create_embedding(self, name: str, params: dict | None = None) -> EmbeddingProvider:
        """
        Create an embedding provider instance.

        Construction is cheap: no model is loaded until initialize().

        Raises:
            ValueError: If no provider is registered under this name
            ProviderInitError: If the provider rejects its parameters
        """
        self._ensure_providers_loaded()
        if name not in self._embedding_providers:
            available = ", ".join(self._embedding_providers.keys()) or "none"
            raise ValueError(
                f"Unknown embedding provider: '{name}'. "
                f"Available providers: {available}."
            )
        try:
            return self._embedding_providers[name](**(params or {}))
        except TypeError as e:
            raise ProviderInitError(
                f"Failed to create embedding provider '{name}': {e}"
            ) from e

    def list_embedding_providers(self) -> list[str]:
        """List registered embedding provider names."""
        self._ensure_providers_loaded()
        return list(self._embedding_providers.keys())


# Global registry instance
# Concrete providers register themselves on import
_registry = ProviderRegistry()


def get_registry() -> ProviderRegistry:
    """Get the global provider registry."""
    return _registry
