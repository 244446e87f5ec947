"""Tests for store configuration."""

import tomllib
from pathlib import Path
from unittest.mock import patch

import pytest

from recall.config import (
    CONFIG_FILENAME,
    ProviderConfig,
    StoreConfig,
    detect_default_embedding,
    get_default_store_path,
    load_config,
    load_or_create_config,
    save_config,
)


class TestStorePath:

    def test_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("RECALL_STORE_PATH", str(tmp_path / "custom"))
        assert get_default_store_path() == (tmp_path / "custom").resolve()

    def test_home_default(self, monkeypatch):
        monkeypatch.delenv("RECALL_STORE_PATH", raising=False)
        assert get_default_store_path() == Path.home() / ".recall"


class TestDetectDefaultEmbedding:

    def test_prefers_sentence_transformers(self):
        with patch("recall.config._has_module", return_value=True):
            assert detect_default_embedding().name == "sentence-transformers"

    def test_fastembed_when_only_onnx(self):
        with patch("recall.config._has_module", side_effect=lambda name: name == "fastembed"):
            assert detect_default_embedding().name == "fastembed"

    def test_openai_when_key_present(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        with patch("recall.config._has_module", return_value=False):
            assert detect_default_embedding().name == "openai"

    def test_fallback(self):
        with patch("recall.config._has_module", return_value=False):
            assert detect_default_embedding().name == "sentence-transformers"


class TestLoadSave:

    def test_roundtrip(self, tmp_path):
        config = StoreConfig(
            path=tmp_path,
            embedding=ProviderConfig("fastembed", {"model": "BAAI/bge-small-en-v1.5"}),
        )
        config.retrieval.top_k = 7
        config.retrieval.enabled = False
        save_config(config)

        loaded = load_config(tmp_path)
        assert loaded.embedding.name == "fastembed"
        assert loaded.embedding.params == {"model": "BAAI/bge-small-en-v1.5"}
        assert loaded.retrieval.top_k == 7
        assert loaded.retrieval.enabled is False
        assert loaded.created == config.created

    def test_api_key_never_written(self, tmp_path):
        config = StoreConfig(
            path=tmp_path,
            embedding=ProviderConfig("openai", {"api_key": "sk-secret", "model": "text-embedding-3-small"}),
        )
        save_config(config)

        text = (tmp_path / CONFIG_FILENAME).read_text()
        assert "sk-secret" not in text
        assert load_config(tmp_path).embedding.params == {"model": "text-embedding-3-small"}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path)

    def test_newer_version_rejected(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text('[store]\nversion = 99\n')
        with pytest.raises(ValueError, match="newer"):
            load_config(tmp_path)

    @pytest.mark.parametrize("top_k", ["0", "-2", "true", '"three"'])
    def test_invalid_top_k(self, tmp_path, top_k):
        (tmp_path / CONFIG_FILENAME).write_text(
            f'[embedding]\nname = "openai"\n\n[retrieval]\ntop_k = {top_k}\n'
        )
        with pytest.raises(ValueError, match="top_k"):
            load_config(tmp_path)

    def test_empty_embedding_name(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text('[embedding]\nname = ""\n')
        with pytest.raises(ValueError, match="name"):
            load_config(tmp_path)

    def test_defaults_for_missing_sections(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text('[store]\nversion = 1\n')
        config = load_config(tmp_path)
        assert config.embedding.name == "sentence-transformers"
        assert config.retrieval.enabled is True
        assert config.retrieval.top_k == 3


class TestLoadOrCreate:

    def test_creates_file(self, tmp_path):
        store = tmp_path / "new-store"
        with patch("recall.config._has_module", return_value=False):
            config = load_or_create_config(store)

        assert (store / CONFIG_FILENAME).exists()
        with open(store / CONFIG_FILENAME, "rb") as f:
            data = tomllib.load(f)
        assert data["embedding"]["name"] == config.embedding.name
        assert data["retrieval"] == {"enabled": True, "top_k": 3}

    def test_loads_existing(self, tmp_path):
        save_config(StoreConfig(path=tmp_path, embedding=ProviderConfig("openai")))
        assert load_or_create_config(tmp_path).embedding.name == "openai"

    def test_paths(self, tmp_path):
        config = StoreConfig(path=tmp_path)
        assert config.config_path == tmp_path / "recall.toml"
        assert config.db_path == tmp_path / "notes.db"
        assert not config.exists()
