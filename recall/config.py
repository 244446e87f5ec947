"""
Configuration management for recall stores.

The configuration is stored as a TOML file in the store directory.
It specifies which embedding provider to use and how retrieval behaves.
"""

import importlib.util
import os
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import tomli_w


CONFIG_FILENAME = "recall.toml"
CONFIG_VERSION = 1
DEFAULT_TOP_K = 3

# Never written to recall.toml; credentials come from the environment or CLI
SECRET_PARAMS = frozenset({"api_key"})


@dataclass
class ProviderConfig:
    """Configuration for a single provider."""
    name: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class RetrievalConfig:
    """Search behaviour."""
    enabled: bool = True
    top_k: int = DEFAULT_TOP_K


@dataclass
class StoreConfig:
    """Complete store configuration."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    embedding: ProviderConfig = field(default_factory=lambda: ProviderConfig("sentence-transformers"))
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    @property
    def db_path(self) -> Path:
        """Path to the SQLite note database."""
        return self.path / "notes.db"

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()


def get_default_store_path() -> Path:
    """Store directory: RECALL_STORE_PATH, else ~/.recall."""
    env = os.environ.get("RECALL_STORE_PATH")
    if env:
        return Path(env).expanduser().resolve()
    return Path.home() / ".recall"


def _has_module(name: str) -> bool:
    return importlib.util.find_spec(name) is not None


def detect_default_embedding() -> ProviderConfig:
    """
    Detect the best default embedding provider for the current environment.

    Priority:
    1. sentence-transformers (if installed)
    2. fastembed (if installed)
    3. OpenAI (if an API key is available)
    4. Fallback: sentence-transformers (init will report the missing dependency)
    """
    if _has_module("sentence_transformers"):
        return ProviderConfig("sentence-transformers")
    if _has_module("fastembed"):
        return ProviderConfig("fastembed")
    if os.environ.get("RECALL_OPENAI_API_KEY") or os.environ.get("OPENAI_API_KEY"):
        return ProviderConfig("openai")
    return ProviderConfig("sentence-transformers")


def create_default_config(store_path: Path) -> StoreConfig:
    """Create a new config with auto-detected defaults."""
    return StoreConfig(
        path=store_path,
        embedding=detect_default_embedding(),
    )


def load_config(store_path: Path) -> StoreConfig:
    """
    Load configuration from a store directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = store_path / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    # Validate version
    version = data.get("store", {}).get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    embedding_section = data.get("embedding", {"name": "sentence-transformers"})
    embedding = ProviderConfig(
        name=embedding_section.get("name", ""),
        params={k: v for k, v in embedding_section.items() if k != "name"},
    )
    if not embedding.name:
        raise ValueError(f"Config {config_path}: [embedding] needs a name")

    retrieval_section = data.get("retrieval", {})
    top_k = retrieval_section.get("top_k", DEFAULT_TOP_K)
    if not isinstance(top_k, int) or isinstance(top_k, bool) or top_k < 1:
        raise ValueError(f"Config {config_path}: retrieval.top_k must be an integer >= 1")

    return StoreConfig(
        path=store_path,
        version=version,
        created=data.get("store", {}).get("created", ""),
        embedding=embedding,
        retrieval=RetrievalConfig(
            enabled=bool(retrieval_section.get("enabled", True)),
            top_k=top_k,
        ),
    )


def save_config(config: StoreConfig) -> None:
    """
    Save configuration to the store directory.

    Creates the directory if it doesn't exist. Secret provider params
    (api_key) are not written.
    """
    config.path.mkdir(parents=True, exist_ok=True)

    embedding = {"name": config.embedding.name}
    embedding.update({
        k: v for k, v in config.embedding.params.items()
        if k not in SECRET_PARAMS and v is not None
    })

    data = {
        "store": {
            "version": config.version,
            "created": config.created,
        },
        "embedding": embedding,
        "retrieval": {
            "enabled": config.retrieval.enabled,
            "top_k": config.retrieval.top_k,
        },
    }

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(store_path: Path) -> StoreConfig:
    """
    Load existing config or create a new one with defaults.

    This is the main entry point for config management.
    """
    config_path = store_path / CONFIG_FILENAME

    if config_path.exists():
        return load_config(store_path)
    else:
        config = create_default_config(store_path)
        save_config(config)
        return config
