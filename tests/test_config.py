"""Tests for StoreConfig."""

import pytest

from agentdb import StoreConfig
from agentdb.config import DEFAULT_URL


def test_defaults(monkeypatch):
    for name in ("AGENTDB_URL", "AGENTDB_EMBEDDING_DIM", "AGENTDB_BUSY_TIMEOUT",
                 "AGENTDB_SEARCH_CACHE", "AGENTDB_SEARCH_CACHE_SIZE", "AGENTDB_MATCH_TOLERANCE"):
        monkeypatch.delenv(name, raising=False)

    config = StoreConfig.from_env()
    assert config.url == DEFAULT_URL
    assert config.embedding_dimension == 384
    assert config.busy_timeout == 5.0
    assert config.enable_search_cache is True
    assert config.search_cache_size == 64


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("AGENTDB_URL", f"sqlite://{tmp_path / 'x.db'}")
    monkeypatch.setenv("AGENTDB_EMBEDDING_DIM", "1536")
    monkeypatch.setenv("AGENTDB_BUSY_TIMEOUT", "0.5")
    monkeypatch.setenv("AGENTDB_SEARCH_CACHE", "off")
    monkeypatch.setenv("AGENTDB_MATCH_TOLERANCE", "0.01")
    monkeypatch.delenv("AGENTDB_SEARCH_CACHE_SIZE", raising=False)

    config = StoreConfig.from_env()
    assert config.url.endswith("x.db")
    assert config.embedding_dimension == 1536
    assert config.busy_timeout == 0.5
    assert config.enable_search_cache is False
    assert config.exact_match_tolerance == 0.01


def test_overrides_win_over_env(monkeypatch):
    monkeypatch.setenv("AGENTDB_EMBEDDING_DIM", "1536")
    assert StoreConfig.from_env(embedding_dimension=8).embedding_dimension == 8


def test_zero_dimension_disables_check():
    assert StoreConfig.in_memory(embedding_dimension=0).embedding_dimension is None


def test_in_memory():
    assert StoreConfig.in_memory().url == ":memory:"


def test_negative_timeout_rejected():
    with pytest.raises(ValueError):
        StoreConfig(busy_timeout=-1)


def test_search_cache_size(monkeypatch):
    monkeypatch.setenv("AGENTDB_SEARCH_CACHE_SIZE", "8")
    assert StoreConfig.from_env().search_cache_size == 8

    with pytest.raises(ValueError):
        StoreConfig(search_cache_size=-1)
