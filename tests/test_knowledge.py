"""Tests for the knowledge store: visibility, search and memoized results."""

import json
import threading
import uuid

import pytest

from agentdb import InvalidInput, KnowledgeItem
from agentdb.core.knowledge import SEARCH_CACHE_PREFIX


def _item(agent_id, text, embedding, shared=False, **metadata):
    return KnowledgeItem(
        agent_id=agent_id,
        content={"text": text, "metadata": {"isShared": shared, **metadata}},
        embedding=embedding,
    )


@pytest.fixture
def kdb(make_db):
    return make_db(embedding_dimension=2)


def test_search_returns_only_close_items(kdb, agent_id):
    first = _item(agent_id, "first", [1.0, 0.0])
    second = _item(agent_id, "second", [0.0, 1.0])
    kdb.create_knowledge(first)
    kdb.create_knowledge(second)

    results = kdb.search_knowledge(agent_id, [0.9, 0.1], threshold=0.8, count=5)
    assert [r.id for r in results] == [first.id]
    assert results[0].similarity >= 0.8


def test_private_rows_are_isolated(kdb, agent_id):
    other = str(uuid.uuid4())
    kdb.create_knowledge(_item(agent_id, "mine", [1.0, 0.0]))
    kdb.create_knowledge(_item(other, "theirs", [1.0, 0.0]))

    assert [k.content.text for k in kdb.get_knowledge(agent_id)] == ["mine"]
    results = kdb.search_knowledge(agent_id, [1.0, 0.0])
    assert [r.content.text for r in results] == ["mine"]


def test_shared_rows_are_visible_to_every_agent(kdb, agent_id):
    other = str(uuid.uuid4())
    shared = _item(agent_id, "common", [1.0, 0.0], shared=True)
    assert kdb.create_knowledge(shared)
    assert shared.agent_id is None

    for agent in (agent_id, other):
        items = kdb.get_knowledge(agent)
        assert [k.id for k in items] == [shared.id]
        assert items[0].is_shared
        assert items[0].agent_id is None


def test_private_item_requires_agent(kdb):
    with pytest.raises(InvalidInput):
        kdb.create_knowledge(_item(None, "orphan", [1.0, 0.0]))


def test_existing_id_is_skipped(kdb, agent_id):
    item = _item(agent_id, "original", [1.0, 0.0])
    assert kdb.create_knowledge(item) is True

    clone = KnowledgeItem(id=item.id, agent_id=agent_id, content={"text": "changed"})
    assert kdb.create_knowledge(clone) is False
    assert kdb.get_knowledge(agent_id, id=item.id)[0].content.text == "original"


def test_metadata_round_trips(kdb, agent_id):
    parent = _item(agent_id, "doc", [1.0, 0.0], isMain=True, source="manual.pdf")
    kdb.create_knowledge(parent)
    chunk = _item(
        agent_id, "chunk", [0.5, 0.5], isChunk=True, originalId=parent.id, chunkIndex=3
    )
    kdb.create_knowledge(chunk)

    loaded = kdb.get_knowledge(agent_id, id=chunk.id)[0]
    assert loaded.content.metadata.is_chunk
    assert loaded.content.metadata.original_id == parent.id
    assert loaded.content.metadata.chunk_index == 3

    rows = kdb.query("SELECT isMain, chunkIndex FROM knowledge WHERE id = ?", [parent.id])
    assert rows == [{"isMain": 1, "chunkIndex": None}]


def test_get_with_limit(kdb, agent_id):
    for i in range(3):
        kdb.create_knowledge(_item(agent_id, f"k{i}", [1.0, float(i)]))
    assert len(kdb.get_knowledge(agent_id, limit=2)) == 2


def test_search_text_prefilter(kdb, agent_id):
    kdb.create_knowledge(_item(agent_id, "Python packaging notes", [1.0, 0.0]))
    kdb.create_knowledge(_item(agent_id, "Rust ownership notes", [1.0, 0.0]))
    kdb.create_knowledge(_item(agent_id, "100% coverage", [1.0, 0.0]))

    results = kdb.search_knowledge(agent_id, [1.0, 0.0], search_text="python")
    assert [r.content.text for r in results] == ["Python packaging notes"]

    # LIKE wildcards in the search text are literal
    results = kdb.search_knowledge(agent_id, [1.0, 0.0], search_text="0%")
    assert [r.content.text for r in results] == ["100% coverage"]


def test_search_results_are_memoized_per_agent(kdb, agent_id):
    kdb.create_knowledge(_item(agent_id, "fact", [1.0, 0.0]))

    first = kdb.search_knowledge(agent_id, [1.0, 0.0])
    assert len(kdb.cache.keys(agent_id, SEARCH_CACHE_PREFIX)) == 1

    second = kdb.search_knowledge(agent_id, [1.0, 0.0])
    assert [r.id for r in second] == [r.id for r in first]
    assert second[0].similarity == pytest.approx(first[0].similarity)


def test_writes_invalidate_memoized_searches(kdb, agent_id):
    kdb.create_knowledge(_item(agent_id, "old", [1.0, 0.0]))
    assert len(kdb.search_knowledge(agent_id, [1.0, 0.0])) == 1

    kdb.create_knowledge(_item(agent_id, "new", [1.0, 0.0]))
    assert kdb.cache.keys(agent_id, SEARCH_CACHE_PREFIX) == []
    assert len(kdb.search_knowledge(agent_id, [1.0, 0.0])) == 2


def test_shared_write_invalidates_every_agent(kdb, agent_id):
    other = str(uuid.uuid4())
    kdb.search_knowledge(agent_id, [1.0, 0.0])
    kdb.search_knowledge(other, [1.0, 0.0])

    kdb.create_knowledge(_item(None, "common", [1.0, 0.0], shared=True))

    assert len(kdb.search_knowledge(agent_id, [1.0, 0.0])) == 1
    assert len(kdb.search_knowledge(other, [1.0, 0.0])) == 1


def test_search_cache_can_be_disabled(make_db, agent_id):
    kdb = make_db(embedding_dimension=2, enable_search_cache=False)
    kdb.create_knowledge(_item(agent_id, "fact", [1.0, 0.0]))
    kdb.search_knowledge(agent_id, [1.0, 0.0])
    assert kdb.cache.keys(agent_id) == []


def test_remove_and_clear(kdb, agent_id):
    mine = _item(agent_id, "mine", [1.0, 0.0])
    kdb.create_knowledge(mine)
    kdb.create_knowledge(_item(agent_id, "also mine", [0.0, 1.0]))
    kdb.create_knowledge(_item(None, "common", [1.0, 1.0], shared=True))

    assert kdb.remove_knowledge(mine.id) == 1
    assert kdb.remove_knowledge(mine.id) == 0

    assert kdb.clear_knowledge(agent_id) == 1
    assert [k.content.text for k in kdb.get_knowledge(agent_id)] == ["common"]

    assert kdb.clear_knowledge(agent_id, shared=True) == 1
    assert kdb.get_knowledge(agent_id) == []


def test_write_during_search_is_not_hidden_by_memo(kdb, agent_id):
    kdb.create_knowledge(_item(agent_id, "old", [1.0, 0.0]))
    original_set = kdb.cache.set
    writers = []

    def set_after_concurrent_write(*args):
        if not writers:
            writer = threading.Thread(
                target=kdb.create_knowledge, args=(_item(agent_id, "new", [1.0, 0.0]),)
            )
            writers.append(writer)
            writer.start()
            writer.join(timeout=0.2)
        return original_set(*args)

    kdb.cache.set = set_after_concurrent_write
    kdb.search_knowledge(agent_id, [1.0, 0.0])
    writers[0].join()

    results = kdb.search_knowledge(agent_id, [1.0, 0.0])
    assert len(results) == 2
    assert {r.id for r in results} == {k.id for k in kdb.get_knowledge(agent_id)}


def test_memo_is_bounded_and_stores_ids_only(make_db, agent_id):
    kdb = make_db(embedding_dimension=2, search_cache_size=3)
    item = _item(agent_id, "fact", [1.0, 0.0])
    kdb.create_knowledge(item)

    for i in range(5):
        kdb.search_knowledge(agent_id, [1.0, float(i)])
    keys = kdb.cache.keys(agent_id, SEARCH_CACHE_PREFIX)
    assert len(keys) == 3

    [[memo_id, score]] = json.loads(kdb.cache.get(agent_id, keys[0]))
    assert memo_id == item.id
    assert isinstance(score, float)


def test_search_text_folds_unicode_case(kdb, agent_id):
    kdb.create_knowledge(_item(agent_id, "Café au lait", [1.0, 0.0]))
    kdb.create_knowledge(_item(agent_id, "Espresso", [1.0, 0.0]))

    results = kdb.search_knowledge(agent_id, [1.0, 0.0], search_text="CAFÉ")
    assert [r.content.text for r in results] == ["Café au lait"]
