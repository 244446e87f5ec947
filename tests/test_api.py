"""Tests for the Recall facade."""

import logging

import pytest

from recall.api import Recall
from recall.config import ProviderConfig, StoreConfig, load_config
from recall.engine import ProviderState
from recall.errors import ProviderInitError, StoreError

from tests.conftest import MockEmbeddingProvider, milk_vectors


@pytest.fixture
def rc(mock_providers, tmp_path):
    recall = Recall(store_path=tmp_path)
    yield recall
    recall.close()


class TestNotes:

    def test_add_and_get(self, rc):
        note = rc.add_note("buy milk")
        assert note.id is not None
        assert rc.get_note(note.id).text == "buy milk"
        assert rc.get_note(note.id).embedding is None

    def test_add_empty_rejected(self, rc):
        with pytest.raises(ValueError):
            rc.add_note("   ")

    def test_list_newest_first(self, rc):
        first = rc.add_note("buy milk")
        second = rc.add_note("call mom")
        ids = [n.id for n in rc.list_notes()]
        assert set(ids) == {first.id, second.id}

    def test_update_clears_embedding(self, rc):
        note = rc.add_note("buy milk")
        rc.backfill()
        assert rc.get_note(note.id).embedding is not None

        updated = rc.update_note(note.id, "call mom")
        assert updated.text == "call mom"
        assert rc.get_note(note.id).embedding is None

    def test_update_missing(self, rc):
        assert rc.update_note(404, "text") is None

    def test_delete(self, rc):
        note = rc.add_note("buy milk")
        assert rc.delete_note(note.id) is True
        assert rc.get_note(note.id) is None
        assert rc.delete_note(note.id) is False

    def test_pin_and_toggle(self, rc):
        note = rc.add_note("buy milk")
        assert rc.set_pinned(note.id, True).pinned is True
        assert rc.toggle_pin(note.id).pinned is False
        assert rc.toggle_pin(note.id).pinned is True
        assert rc.get_note(note.id).pinned is True

    def test_pin_missing(self, rc):
        assert rc.set_pinned(404, True) is None
        assert rc.toggle_pin(404) is None


class TestFind:

    def test_find_uses_config_top_k(self, rc):
        for text in ("buy milk", "call mom", "milk", "mom"):
            rc.add_note(text)
        rc.config.retrieval.top_k = 2
        assert len(rc.find("milk")) == 2

    def test_find_explicit_k(self, rc):
        rc.add_note("buy milk")
        rc.add_note("call mom")
        results = rc.find("milk", k=1)
        assert [r.text for r in results] == ["buy milk"]

    def test_find_pinned_first(self, rc):
        rc.add_note("buy milk")
        rc.add_note("call mom", pinned=True)
        results = rc.find("milk", k=1)
        assert [r.text for r in results] == ["call mom", "buy milk"]

    def test_retrieval_disabled(self, rc, mock_providers):
        rc.add_note("buy milk")
        rc.config.retrieval.enabled = False
        assert rc.find("milk") == []
        assert mock_providers["embedding"].embed_calls == 0

    def test_backfill_then_reindex(self, rc):
        rc.add_note("buy milk")
        rc.add_note("call mom")
        assert rc.backfill() == 2
        assert rc.backfill() == 0
        assert rc.reindex() == 2


class TestProvider:

    def test_provider_from_config(self, mock_providers, tmp_path):
        with Recall(store_path=tmp_path) as rc:
            name = rc.config.embedding.name
        mock_providers["registry"].create_embedding.assert_called_with(name, {})

    def test_set_provider_persists(self, rc, mock_providers, tmp_path):
        new_provider = MockEmbeddingProvider(dimension=8, vectors=milk_vectors(8))
        mock_providers["registry"].create_embedding.return_value = new_provider
        rc.add_note("buy milk")
        rc.find("milk")

        rc.set_provider("MEDIAPIPE_BERT", api_key="sk-not-saved")

        assert rc.config.embedding.name == "fastembed"
        assert load_config(tmp_path).embedding.name == "fastembed"
        assert "sk-not-saved" not in (tmp_path / "recall.toml").read_text()
        results = rc.find("milk")
        assert len(results[0].note.embedding) == 8

    def test_set_provider_failure_keeps_config(self, rc, mock_providers, tmp_path):
        mock_providers["registry"].create_embedding.return_value = MockEmbeddingProvider(
            init_error=ProviderInitError("no model")
        )
        before = load_config(tmp_path).embedding.name
        with pytest.raises(ProviderInitError):
            rc.set_provider("openai")
        assert load_config(tmp_path).embedding.name == before
        assert rc.engine.state == ProviderState.UNBOUND

    def test_status(self, rc):
        rc.add_note("buy milk")
        status = rc.status()
        assert status["notes"] == 1
        assert status["missing_embeddings"] == 1
        assert status["state"] == "unbound"
        assert status["dimension"] is None
        rc.backfill()
        status = rc.status()
        assert status["missing_embeddings"] == 0
        assert status["dimension"] == 4


class TestLifecycle:

    def test_injected_config_and_provider(self, tmp_path):
        config = StoreConfig(path=tmp_path, embedding=ProviderConfig("custom"))
        provider = MockEmbeddingProvider()
        with Recall(config=config, provider=provider) as rc:
            rc.add_note("buy milk")
            rc.find("milk")
        assert provider.shutdown_calls == 1

    def test_close_removes_ops_log_handler(self, mock_providers, tmp_path):
        recall_logger = logging.getLogger("recall")
        before = len(recall_logger.handlers)
        rc = Recall(store_path=tmp_path)
        assert len(recall_logger.handlers) == before + 1
        rc.close()
        assert len(recall_logger.handlers) == before
        assert (tmp_path / "recall-ops.log").exists()

    def test_failed_open_detaches_ops_log(self, mock_providers, tmp_path):
        mock_providers["registry"].create_embedding.side_effect = ValueError("Unknown embedding provider: nope")
        recall_logger = logging.getLogger("recall")
        before = list(recall_logger.handlers)

        with pytest.raises(ValueError):
            Recall(store_path=tmp_path)

        assert recall_logger.handlers == before

    def test_failed_store_open_detaches_ops_log(self, tmp_path):
        recall_logger = logging.getLogger("recall")
        before = list(recall_logger.handlers)
        config = StoreConfig(path=tmp_path, embedding=ProviderConfig("custom"))
        (tmp_path / "notes.db").mkdir()

        with pytest.raises(StoreError):
            Recall(config=config, provider=MockEmbeddingProvider())

        assert recall_logger.handlers == before

    def test_close_is_idempotent(self, mock_providers, tmp_path):
        rc = Recall(store_path=tmp_path)
        rc.close()
        rc.close()
