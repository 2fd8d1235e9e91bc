"""
Knowledge Store - retrieval-augmented knowledge snippets.

Visibility: an agent sees its own rows plus rows marked shared, never
another agent's private rows. Shared rows carry no agent id.

Search results are memoized in the Cache Store (per agent) as (id, score)
pairs, capped at the newest `cache_size` searches per agent. A memo is
computed and written in the same transaction as the rows it was read from,
and every knowledge write drops the memos inside its own transaction, so a
memo never outlives the rows it was computed from.
"""

import hashlib
import json
import logging
from typing import Any, List, Optional

from ..errors import InvalidInput
from ..similarity.vectors import (
    check_dimension,
    decode_embedding,
    encode_embedding,
    rank_by_similarity,
)
from .cache import CacheStore
from .connection import ConnectionManager
from .models import (
    KnowledgeItem,
    UUIDLike,
    from_db_time,
    to_db_time,
    to_id,
)

logger = logging.getLogger(__name__)

SEARCH_CACHE_PREFIX = "knowledge_search:"
DEFAULT_SEARCH_CACHE_SIZE = 64

_VISIBLE = "(agentId = ? OR isShared = 1)"


def _row_to_item(row) -> KnowledgeItem:
    return KnowledgeItem(
        id=row["id"],
        agent_id=row["agentId"],
        content=json.loads(row["content"]),
        embedding=decode_embedding(row["embedding"]),
        created_at=from_db_time(row["createdAt"]),
    )


class KnowledgeStore:
    def __init__(
        self,
        connections: ConnectionManager,
        cache: Optional[CacheStore] = None,
        embedding_dimension: Optional[int] = None,
        cache_size: int = DEFAULT_SEARCH_CACHE_SIZE,
    ):
        self.connections = connections
        self.cache = cache if cache_size > 0 else None
        self.embedding_dimension = embedding_dimension
        self.cache_size = cache_size

    def create(self, item: KnowledgeItem) -> bool:
        """
        Insert a knowledge item.

        An item whose id already exists is skipped, not overwritten.

        Returns:
            True if a row was written
        """
        metadata = item.content.metadata
        shared = metadata.is_shared
        if shared:
            agent_id = None
        elif item.agent_id is None:
            raise InvalidInput("agent_id is required for non-shared knowledge")
        else:
            agent_id = to_id(item.agent_id, "agent_id")

        vec = None
        if item.embedding is not None and len(item.embedding) > 0:
            vec = check_dimension(item.embedding, self.embedding_dimension)

        item_id = to_id(item.id)
        with self.connections.transaction() as conn:
            exists = conn.execute(
                "SELECT 1 FROM knowledge WHERE id = ?", (item_id,)
            ).fetchone()
            if exists:
                if shared:
                    logger.info(f"Shared knowledge {item_id} already exists, skipping")
                else:
                    logger.debug(f"Knowledge {item_id} already exists, skipping")
                return False

            conn.execute(
                """INSERT INTO knowledge
                   (id, agentId, content, embedding, createdAt,
                    isMain, originalId, chunkIndex, isShared)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    item_id,
                    agent_id,
                    item.content.to_json(),
                    encode_embedding(vec),
                    to_db_time(item.created_at),
                    1 if metadata.is_main else 0,
                    metadata.original_id,
                    metadata.chunk_index,
                    1 if shared else 0,
                ),
            )
            self._invalidate_searches()

        item.agent_id = agent_id
        logger.debug(f"Created knowledge {item_id} (shared={shared})")
        return True

    def get(
        self,
        agent_id: UUIDLike,
        id: Optional[UUIDLike] = None,
        limit: Optional[int] = None,
    ) -> List[KnowledgeItem]:
        """Knowledge visible to an agent, optionally a single id."""
        sql = f"SELECT * FROM knowledge WHERE {_VISIBLE}"
        params: List[Any] = [to_id(agent_id, "agent_id")]
        if id is not None:
            sql += " AND id = ?"
            params.append(to_id(id))
        sql += " ORDER BY createdAt DESC, rowid DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))

        with self.connections.connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_item(r) for r in rows]

    def search(
        self,
        agent_id: UUIDLike,
        embedding: List[float],
        threshold: float = 0.0,
        count: Optional[int] = 10,
        search_text: Optional[str] = None,
    ) -> List[KnowledgeItem]:
        """
        Rank visible knowledge by cosine similarity.

        Args:
            agent_id: Agent whose private rows (plus shared rows) are searched
            embedding: Query embedding
            threshold: Minimum cosine similarity
            count: Maximum results
            search_text: Substring the text must contain, compared with
                Unicode case folding; applied in SQL before any vector
                comparison

        Returns:
            KnowledgeItem list with .similarity, best first
        """
        agent = to_id(agent_id, "agent_id")
        query = check_dimension(embedding, self.embedding_dimension)
        if count is not None and count <= 0:
            return []

        if self.cache is None:
            with self.connections.connection() as conn:
                return self._rank(conn, agent, query, threshold, count, search_text)

        cache_key = self._cache_key(query.tobytes(), threshold, count, search_text)
        cached = self.cache.get(agent, cache_key)
        if cached is not None:
            items = self._load_hits(agent, json.loads(cached))
            if items is not None:
                logger.debug(f"Knowledge search cache hit for agent {agent}")
                return items

        # Rows and memo in one transaction: a concurrent write either lands
        # before (and is ranked) or after (and drops the memo)
        with self.connections.transaction() as conn:
            results = self._rank(conn, agent, query, threshold, count, search_text)
            self.cache.set(
                agent, cache_key, json.dumps([[r.id, r.similarity] for r in results])
            )
            self.cache.trim_prefix(agent, SEARCH_CACHE_PREFIX, self.cache_size)
        return results

    def _rank(self, conn, agent, query, threshold, count, search_text) -> List[KnowledgeItem]:
        sql = f"SELECT * FROM knowledge WHERE {_VISIBLE} AND embedding IS NOT NULL"
        params: List[Any] = [agent]
        if search_text:
            sql += " AND instr(casefold(json_extract(content, '$.text')), ?) > 0"
            params.append(search_text.casefold())
        sql += " ORDER BY createdAt DESC, rowid DESC"

        rows = conn.execute(sql, params).fetchall()

        results = []
        for row, score in rank_by_similarity(
            query, ((row, row["embedding"]) for row in rows), threshold, count
        ):
            item = _row_to_item(row)
            item.similarity = score
            results.append(item)

        logger.debug(
            f"Knowledge search for agent {agent}: {len(results)} of {len(rows)} candidates"
        )
        return results

    def _load_hits(self, agent: str, hits: List[List[Any]]) -> Optional[List[KnowledgeItem]]:
        """Rows for a memoized search, or None when any of them is gone."""
        if not hits:
            return []
        ids = [hit[0] for hit in hits]
        with self.connections.connection() as conn:
            rows = conn.execute(
                f"""SELECT * FROM knowledge WHERE {_VISIBLE}
                    AND id IN ({self.connections.placeholders(len(ids))})""",
                [agent, *ids],
            ).fetchall()
        by_id = {row["id"]: row for row in rows}
        if len(by_id) != len(ids):
            return None

        items = []
        for item_id, score in hits:
            item = _row_to_item(by_id[item_id])
            item.similarity = score
            items.append(item)
        return items

    def remove(self, id: UUIDLike) -> int:
        with self.connections.transaction() as conn:
            removed = conn.execute(
                "DELETE FROM knowledge WHERE id = ?", (to_id(id),)
            ).rowcount
            if removed:
                self._invalidate_searches()
        return removed

    def clear(self, agent_id: UUIDLike, shared: bool = False) -> int:
        """
        Delete an agent's private knowledge.

        Shared rows are only deleted when shared=True is passed explicitly.
        """
        agent = to_id(agent_id, "agent_id")
        with self.connections.transaction() as conn:
            if shared:
                cursor = conn.execute(
                    "DELETE FROM knowledge WHERE agentId = ? OR isShared = 1", (agent,)
                )
            else:
                cursor = conn.execute("DELETE FROM knowledge WHERE agentId = ?", (agent,))
            removed = cursor.rowcount
            self._invalidate_searches()

        logger.info(f"Cleared {removed} knowledge rows for agent {agent} (shared={shared})")
        return removed

    @staticmethod
    def _cache_key(query: bytes, threshold, count, search_text) -> str:
        digest = hashlib.sha256()
        digest.update(query)
        digest.update(json.dumps([threshold, count, search_text or ""]).encode())
        return SEARCH_CACHE_PREFIX + digest.hexdigest()[:32]

    def _invalidate_searches(self) -> None:
        # Shared rows are visible to every agent, so drop every agent's entries
        if self.cache is not None:
            self.cache.delete_prefix(SEARCH_CACHE_PREFIX)
