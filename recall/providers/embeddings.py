"""
Embedding providers: two local models and one remote API.

- sentence-transformers: in-process PyTorch model (default all-MiniLM-L6-v2, 384d)
- fastembed: in-process ONNX model (default BAAI/bge-base-en-v1.5, 768d)
- openai: HTTP embeddings endpoint (default text-embedding-ada-002, 1536d)

Local providers load their model once in initialize() and are not
thread-safe. The remote provider is stateless apart from its credential.
"""

import logging
import os
from urllib.parse import urlparse

import requests

from ..errors import EmbedError, ProviderInitError
from ..vectors import embedding_stats
from .base import get_registry

logger = logging.getLogger(__name__)


# Known output dimensions, used before a model is loaded
MODEL_DIMENSIONS = {
    "all-MiniLM-L6-v2": 384,
    "sentence-transformers/all-MiniLM-L6-v2": 384,
    "all-mpnet-base-v2": 768,
    "sentence-transformers/all-mpnet-base-v2": 768,
    "BAAI/bge-small-en-v1.5": 384,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
    "nomic-ai/nomic-embed-text-v1.5": 768,
    "text-embedding-ada-002": 1536,
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
}

OPENAI_EMBEDDINGS_URL = "https://api.openai.com/v1/embeddings"
DEFAULT_TIMEOUT = 30


def _log_embedding(provider: str, vector: list[float]) -> None:
    if logger.isEnabledFor(logging.DEBUG):
        stats = embedding_stats(vector)
        logger.debug(
            "%s embedding: dim=%d min=%.4f max=%.4f mean=%.4f head=%s",
            provider, stats["dimension"], stats.get("min", 0.0),
            stats.get("max", 0.0), stats.get("mean", 0.0), stats.get("head"),
        )


def _check_text(text: str) -> None:
    if not text or not text.strip():
        raise EmbedError("Cannot embed empty text")


# -----------------------------------------------------------------------------
# Local: sentence-transformers
# -----------------------------------------------------------------------------

class SentenceTransformerEmbedding:
    """
    Local embedding with sentence-transformers.

    The model is downloaded to the HuggingFace cache on first use and
    loaded into memory by initialize().
    """

    def __init__(self, model: str = "all-MiniLM-L6-v2", device: str | None = None):
        self.model_name = model
        self.device = device
        self._model = None
        self._dimension = MODEL_DIMENSIONS.get(model, 384)

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def initialized(self) -> bool:
        return self._model is not None

    def initialize(self) -> None:
        if self._model is not None:
            return
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as e:
            raise ProviderInitError(
                "sentence-transformers is required for this provider. "
                "Install with: pip install 'recall-notes[local]'"
            ) from e

        try:
            model = SentenceTransformer(self.model_name, device=self.device)
        except Exception as e:
            raise ProviderInitError(
                f"Failed to load sentence-transformers model '{self.model_name}': {e}"
            ) from e

        dim = model.get_sentence_embedding_dimension()
        if dim:
            self._dimension = int(dim)
        self._model = model
        logger.info("Loaded sentence-transformers model %s (%dd)", self.model_name, self._dimension)

    def embed(self, text: str) -> list[float]:
        if self._model is None:
            raise EmbedError(f"Model '{self.model_name}' is not initialized")
        _check_text(text)
        try:
            vector = self._model.encode(text, convert_to_numpy=True).tolist()
        except Exception as e:
            raise EmbedError(f"sentence-transformers encoding failed: {e}") from e
        _log_embedding("sentence-transformers", vector)
        return vector

    def shutdown(self) -> None:
        if self._model is not None:
            logger.debug("Releasing sentence-transformers model %s", self.model_name)
        self._model = None


# -----------------------------------------------------------------------------
# Local: fastembed (ONNX runtime)
# -----------------------------------------------------------------------------

class FastEmbedEmbedding:
    """
    Local embedding with fastembed's ONNX models.

    Lighter than sentence-transformers (no PyTorch). The default BGE base
    model produces 768-dimensional vectors.
    """

    def __init__(
        self,
        model: str = "BAAI/bge-base-en-v1.5",
        cache_dir: str | None = None,
        threads: int | None = None,
    ):
        self.model_name = model
        self.cache_dir = cache_dir
        self.threads = threads
        self._model = None
        self._dimension = MODEL_DIMENSIONS.get(model, 768)

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def initialized(self) -> bool:
        return self._model is not None

    def initialize(self) -> None:
        if self._model is not None:
            return
        try:
            from fastembed import TextEmbedding
        except ImportError as e:
            raise ProviderInitError(
                "fastembed is required for this provider. "
                "Install with: pip install 'recall-notes[local]'"
            ) from e

        kwargs = {"model_name": self.model_name}
        if self.cache_dir:
            kwargs["cache_dir"] = self.cache_dir
        if self.threads:
            kwargs["threads"] = self.threads
        try:
            self._model = TextEmbedding(**kwargs)
        except Exception as e:
            raise ProviderInitError(
                f"Failed to load fastembed model '{self.model_name}': {e}"
            ) from e
        logger.info("Loaded fastembed model %s", self.model_name)

    def embed(self, text: str) -> list[float]:
        if self._model is None:
            raise EmbedError(f"Model '{self.model_name}' is not initialized")
        _check_text(text)
        try:
            vector = next(iter(self._model.embed([text]))).tolist()
        except Exception as e:
            raise EmbedError(f"fastembed encoding failed: {e}") from e
        # Declared dimension is a guess for unknown models; trust the model
        self._dimension = len(vector)
        _log_embedding("fastembed", vector)
        return vector

    def shutdown(self) -> None:
        if self._model is not None:
            logger.debug("Releasing fastembed model %s", self.model_name)
        self._model = None


# -----------------------------------------------------------------------------
# Remote: OpenAI-compatible embeddings API
# -----------------------------------------------------------------------------

class OpenAIEmbedding:
    """
    Embedding via an OpenAI-compatible HTTP endpoint.

    One POST per embed() call with payload {model, input}. Network failures,
    non-2xx responses and malformed payloads all raise EmbedError.

    Requires: api_key parameter, or RECALL_OPENAI_API_KEY / OPENAI_API_KEY.
    """

    def __init__(
        self,
        model: str = "text-embedding-ada-002",
        api_key: str | None = None,
        api_url: str = OPENAI_EMBEDDINGS_URL,
        timeout: float = DEFAULT_TIMEOUT,
        dimension: int | None = None,
    ):
        self.model_name = model
        self.api_url = api_url
        self.timeout = timeout
        self._api_key = api_key
        self._headers: dict[str, str] | None = None
        self._dimension = dimension or MODEL_DIMENSIONS.get(model, 1536)

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def initialized(self) -> bool:
        return self._headers is not None

    def initialize(self) -> None:
        if self._headers is not None:
            return
        key = (
            self._api_key
            or os.environ.get("RECALL_OPENAI_API_KEY")
            or os.environ.get("OPENAI_API_KEY")
        )
        if not key:
            raise ProviderInitError(
                "OpenAI API key required. Set RECALL_OPENAI_API_KEY or OPENAI_API_KEY, "
                "or pass --api-key"
            )

        # Refuse non-HTTPS for remote APIs (bearer token would be sent in cleartext)
        parsed = urlparse(self.api_url)
        if parsed.scheme != "https" and parsed.hostname not in ("localhost", "127.0.0.1", "::1"):
            raise ProviderInitError(
                f"Embeddings API URL must use HTTPS (got {self.api_url})"
            )

        self._headers = {
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }
        logger.info("OpenAI embeddings ready (%s, %dd)", self.model_name, self._dimension)

    def embed(self, text: str) -> list[float]:
        if self._headers is None:
            raise EmbedError("OpenAI embeddings provider is not initialized")
        _check_text(text)

        try:
            response = requests.post(
                self.api_url,
                headers=self._headers,
                json={"model": self.model_name, "input": text},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise EmbedError(f"OpenAI embeddings request failed: {e}") from e

        if not response.ok:
            detail = response.text[:200] if response.text else ""
            raise EmbedError(
                f"OpenAI embeddings failed (model={self.model_name}): "
                f"HTTP {response.status_code}. {detail}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise EmbedError("OpenAI embeddings returned a non-JSON body") from e

        vector = _extract_embedding(payload)
        _log_embedding("openai", vector)
        return vector

    def shutdown(self) -> None:
        self._headers = None


def _extract_embedding(payload) -> list[float]:
    """
    Pull the vector out of an embeddings response.

    Accepts the OpenAI shape {"data": [{"embedding": [...]}]} and the bare
    {"embedding": [...]} shape used by compatible servers.
    """
    vector = None
    if isinstance(payload, dict):
        data = payload.get("data")
        if isinstance(data, list) and data and isinstance(data[0], dict):
            vector = data[0].get("embedding")
        elif "embedding" in payload:
            vector = payload["embedding"]

    if not isinstance(vector, list) or not vector:
        raise EmbedError("Malformed embeddings response: no embedding vector")
    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in vector):
        raise EmbedError("Malformed embeddings response: non-numeric values")
    return [float(v) for v in vector]


# Register providers
_registry = get_registry()
_registry.register_embedding("sentence-transformers", SentenceTransformerEmbedding)
_registry.register_embedding("fastembed", FastEmbedEmbedding)
_registry.register_embedding("openai", OpenAIEmbedding)
