"""Shared fixtures: throwaway databases and ids."""

import uuid

import pytest

from agentdb import AgentDatabase, StoreConfig


@pytest.fixture
def make_db():
    """Factory for initialized in-memory databases (3-dim embeddings by default)."""
    opened = []

    def _make(**overrides):
        overrides.setdefault("embedding_dimension", 3)
        db = AgentDatabase(StoreConfig.in_memory(**overrides)).init()
        opened.append(db)
        return db

    yield _make

    for db in opened:
        db.close()


@pytest.fixture
def db(make_db):
    return make_db()


@pytest.fixture
def file_db(tmp_path):
    config = StoreConfig(url=f"sqlite://{tmp_path / 'agent.db'}", embedding_dimension=3)
    db = AgentDatabase(config).init()
    yield db
    db.close()


@pytest.fixture
def agent_id():
    return str(uuid.uuid4())


@pytest.fixture
def room_id():
    return str(uuid.uuid4())


@pytest.fixture
def user_id():
    return str(uuid.uuid4())
