"""
Embedding provider interfaces for recall.

Concrete providers register themselves with the global registry when
recall.providers.embeddings is imported; the registry does that lazily
on first use.
"""

from .base import (
    EmbeddingProvider,
    ProviderRegistry,
    get_registry,
)

__all__ = [
    "EmbeddingProvider",
    "ProviderRegistry",
    "get_registry",
]
