"""
Store configuration.

Values come from keyword arguments or from the environment:

    AGENTDB_URL                "sqlite://<path>", "sqlite", ":memory:" or a path
    AGENTDB_EMBEDDING_DIM      expected embedding length (0 disables the check)
    AGENTDB_BUSY_TIMEOUT       seconds to wait on a locked database file
    AGENTDB_SEARCH_CACHE       "0"/"false" disables knowledge search memoization
    AGENTDB_SEARCH_CACHE_SIZE  memoized knowledge searches kept per agent
    AGENTDB_MATCH_TOLERANCE    tolerance for "identical embedding" duplicate checks
"""

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_URL = "sqlite://~/.agentdb/agent.db"
DEFAULT_EMBEDDING_DIMENSION = 384  # all-MiniLM-L6-v2

_FALSEY = {"0", "false", "no", "off"}


@dataclass
class StoreConfig:
    """Settings shared by every store of one AgentDatabase."""

    url: str = DEFAULT_URL
    embedding_dimension: Optional[int] = DEFAULT_EMBEDDING_DIMENSION
    busy_timeout: float = 5.0
    enable_search_cache: bool = True
    search_cache_size: int = 64
    exact_match_tolerance: float = 1e-6

    def __post_init__(self):
        if self.embedding_dimension is not None and self.embedding_dimension <= 0:
            self.embedding_dimension = None
        if self.busy_timeout < 0:
            raise ValueError(f"busy_timeout must be >= 0, got {self.busy_timeout}")
        if self.search_cache_size < 0:
            raise ValueError(f"search_cache_size must be >= 0, got {self.search_cache_size}")

    @classmethod
    def from_env(cls, **overrides) -> "StoreConfig":
        """Build a config from AGENTDB_* environment variables."""
        values = {
            "url": os.environ.get("AGENTDB_URL", DEFAULT_URL),
            "embedding_dimension": int(
                os.environ.get("AGENTDB_EMBEDDING_DIM", DEFAULT_EMBEDDING_DIMENSION)
            ),
            "busy_timeout": float(os.environ.get("AGENTDB_BUSY_TIMEOUT", "5.0")),
            "enable_search_cache": (
                os.environ.get("AGENTDB_SEARCH_CACHE", "1").strip().lower() not in _FALSEY
            ),
            "search_cache_size": int(os.environ.get("AGENTDB_SEARCH_CACHE_SIZE", "64")),
            "exact_match_tolerance": float(
                os.environ.get("AGENTDB_MATCH_TOLERANCE", "1e-6")
            ),
        }
        values.update(overrides)
        return cls(**values)

    @classmethod
    def in_memory(cls, **overrides) -> "StoreConfig":
        """Config for a throwaway in-memory database (tests, scratch agents)."""
        overrides.setdefault("url", ":memory:")
        return cls(**overrides)
