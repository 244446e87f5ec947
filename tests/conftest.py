"""
Shared pytest fixtures for recall tests.

Provides mock providers to avoid loading heavy ML models during testing.
"""

import hashlib
from unittest.mock import MagicMock, patch

import pytest

from recall.config import StoreConfig
from recall.errors import EmbedError, ProviderInitError
from recall.note_store import NoteStore


class MockEmbeddingProvider:
    """
    Deterministic mock embedding provider for testing.

    Returns the vector registered for a text in `vectors`, otherwise one
    derived from the text hash. Texts in `fail_on` raise EmbedError.
    """

    def __init__(
        self,
        dimension: int = 4,
        vectors: dict[str, list[float]] | None = None,
        fail_on: set[str] | None = None,
        init_error: Exception | None = None,
        model_name: str = "mock-model",
    ):
        self._dimension = dimension
        self.vectors = dict(vectors or {})
        self.fail_on = set(fail_on or ())
        self.init_error = init_error
        self.model_name = model_name
        self.initialized = False
        self.init_calls = 0
        self.shutdown_calls = 0
        self.embed_calls = 0
        self.embedded: list[str] = []

    @property
    def dimension(self) -> int:
        return self._dimension

    def initialize(self) -> None:
        self.init_calls += 1
        if self.init_error is not None:
            raise self.init_error
        self.initialized = True

    def embed(self, text: str) -> list[float]:
        """Generate deterministic embedding from text hash."""
        if not self.initialized:
            raise EmbedError("not initialized")
        self.embed_calls += 1
        self.embedded.append(text)
        if text in self.fail_on:
            raise EmbedError(f"cannot embed {text!r}")
        if text in self.vectors:
            return list(self.vectors[text])
        h = hashlib.md5(text.encode()).hexdigest()
        embedding = [int(h[i:i+2], 16) / 255.0 + 0.01 for i in range(0, 32, 2)]
        return (embedding * (self._dimension // 16 + 1))[:self._dimension]

    def shutdown(self) -> None:
        self.shutdown_calls += 1
        self.initialized = False


def milk_vectors(dimension: int = 4) -> dict[str, list[float]]:
    """One-hot vectors for the 'buy milk' / 'call mom' scenarios."""
    def one_hot(i):
        v = [0.0] * dimension
        v[i] = 1.0
        return v
    return {
        "buy milk": one_hot(0),
        "call mom": one_hot(1),
        "milk": one_hot(0),
        "mom": one_hot(1),
    }


@pytest.fixture
def mock_embedding_provider():
    """Create a fresh MockEmbeddingProvider instance."""
    return MockEmbeddingProvider()


@pytest.fixture
def failing_init_provider():
    """Provider whose initialize() always fails."""
    return MockEmbeddingProvider(init_error=ProviderInitError("model file missing"))


@pytest.fixture
def note_store(tmp_path):
    """A real SQLite note store in a temp directory."""
    store = NoteStore(tmp_path / "notes.db")
    yield store
    store.close()


@pytest.fixture
def store_config(tmp_path):
    """Store config pointing at a temp directory."""
    return StoreConfig(path=tmp_path)


@pytest.fixture
def mock_providers():
    """
    Fixture that patches the provider registry used by Recall.

    This avoids loading real ML models (sentence-transformers, fastembed)
    or calling a remote API. The note store is a real SQLite file.

    Usage:
        def test_something(mock_providers, tmp_path):
            rc = Recall(store_path=tmp_path)
            # ... test using the mocked embedding provider
    """
    mock_embed = MockEmbeddingProvider(vectors=milk_vectors())

    mock_reg = MagicMock()
    mock_reg.create_embedding.return_value = mock_embed
    mock_reg.list_embedding_providers.return_value = ["sentence-transformers", "fastembed", "openai"]

    with patch("recall.api.get_registry", return_value=mock_reg):
        yield {
            "embedding": mock_embed,
            "registry": mock_reg,
        }


@pytest.fixture(autouse=True)
def isolated_store_env(tmp_path, monkeypatch):
    """Keep tests away from ~/.recall and real API keys."""
    monkeypatch.setenv("RECALL_STORE_PATH", str(tmp_path))
    monkeypatch.delenv("RECALL_OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (loading real ML models)"
    )
    config.addinivalue_line(
        "markers", "e2e: marks tests as end-to-end (require real providers)"
    )
