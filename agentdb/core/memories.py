"""
Memory Store - messages and documents, per room and per agent.

Memories live in one table partitioned by a logical table name
("messages", "documents", ...). Embedding search pre-selects candidates in
SQL (partition, agent, room) and ranks them with cosine similarity.
"""

import json
import logging
from datetime import datetime
from typing import Any, Iterable, List, Optional

from ..errors import InvalidInput
from ..similarity.vectors import (
    check_dimension,
    decode_embedding,
    embeddings_match,
    encode_embedding,
    rank_by_similarity,
)
from .connection import ConnectionManager
from .models import (
    Memory,
    UUIDLike,
    from_db_time,
    new_id,
    optional_id,
    to_db_time,
    to_id,
)

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "messages"

# Two memories are duplicates when their text is identical; text-less
# payloads compare as whole canonical JSON.
CONTENT_KEY = (
    "CASE WHEN COALESCE(json_extract(content, '$.text'), '') <> '' "
    "THEN json_extract(content, '$.text') ELSE content END"
)

_COLUMNS = f'id, type, createdAt, content, embedding, userId, roomId, agentId, "unique", {CONTENT_KEY} AS contentKey'


def _row_to_memory(row) -> Memory:
    return Memory(
        id=row["id"],
        agent_id=row["agentId"],
        room_id=row["roomId"],
        user_id=row["userId"],
        content=json.loads(row["content"]),
        embedding=decode_embedding(row["embedding"]),
        created_at=from_db_time(row["createdAt"]),
        unique=bool(row["unique"]),
        table_name=row["type"],
    )


def _collapse(rows: Iterable[Any]) -> List[Any]:
    """Keep the first row per distinct content key."""
    seen = set()
    kept = []
    for row in rows:
        key = row["contentKey"]
        if key in seen:
            continue
        seen.add(key)
        kept.append(row)
    return kept


class MemoryStore:
    """Typed CRUD and similarity search over memories."""

    def __init__(
        self,
        connections: ConnectionManager,
        embedding_dimension: Optional[int] = None,
        exact_match_tolerance: float = 1e-6,
    ):
        self.connections = connections
        self.embedding_dimension = embedding_dimension
        self.exact_match_tolerance = exact_match_tolerance

    def create(self, memory: Memory, table_name: str = DEFAULT_TABLE) -> bool:
        """
        Insert a memory.

        With memory.unique set, the insert is skipped (no error) when the
        same room and table already hold identical content text or an
        identical embedding. Check and insert share one transaction.

        Returns:
            True if a row was written, False if it was a suppressed duplicate
        """
        if not table_name:
            raise InvalidInput("table_name is required")
        room_id = to_id(memory.room_id, "room_id")
        agent_id = to_id(memory.agent_id, "agent_id")
        user_id = optional_id(memory.user_id, "user_id")

        vec = None
        if memory.embedding is not None and len(memory.embedding) > 0:
            vec = check_dimension(memory.embedding, self.embedding_dimension)

        if memory.id is None:
            memory.id = new_id()
        content_json = memory.content.to_json()
        content_key = memory.content.text or content_json

        with self.connections.transaction() as conn:
            if memory.unique and self._find_duplicate(conn, table_name, room_id, content_key, vec):
                logger.debug(f"Skipped duplicate memory in room {room_id} ({table_name})")
                return False

            conn.execute(
                """INSERT INTO memories
                   (id, type, createdAt, content, embedding, userId, roomId, agentId, "unique")
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    to_id(memory.id),
                    table_name,
                    to_db_time(memory.created_at),
                    content_json,
                    encode_embedding(vec),
                    user_id,
                    room_id,
                    agent_id,
                    1 if memory.unique else 0,
                ),
            )

        memory.table_name = table_name
        logger.debug(f"Created memory {memory.id} in room {room_id} ({table_name})")
        return True

    def _find_duplicate(self, conn, table_name, room_id, content_key, vec) -> bool:
        row = conn.execute(
            f"""SELECT 1 FROM memories
                WHERE type = ? AND roomId = ? AND {CONTENT_KEY} = ?
                LIMIT 1""",
            (table_name, room_id, content_key),
        ).fetchone()
        if row:
            return True

        if vec is None:
            return False

        rows = conn.execute(
            """SELECT embedding FROM memories
               WHERE type = ? AND roomId = ? AND embedding IS NOT NULL
               AND length(embedding) = ?""",
            (table_name, room_id, vec.nbytes),
        ).fetchall()
        return any(
            embeddings_match(decode_embedding(r["embedding"]), vec, self.exact_match_tolerance)
            for r in rows
        )

    def get_by_id(self, memory_id: UUIDLike) -> Optional[Memory]:
        with self.connections.connection() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM memories WHERE id = ?",
                (to_id(memory_id, "memory_id"),),
            ).fetchone()
        return _row_to_memory(row) if row else None

    def get_by_ids(self, memory_ids: List[UUIDLike], table_name: Optional[str] = None) -> List[Memory]:
        if not memory_ids:
            return []
        ids = [to_id(m, "memory_id") for m in memory_ids]
        sql = f"SELECT {_COLUMNS} FROM memories WHERE id IN ({self.connections.placeholders(len(ids))})"
        params: List[Any] = list(ids)
        if table_name:
            sql += " AND type = ?"
            params.append(table_name)
        sql += " ORDER BY createdAt DESC, rowid DESC"

        with self.connections.connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_memory(r) for r in rows]

    def get_by_room(
        self,
        room_ids: List[UUIDLike],
        table_name: str = DEFAULT_TABLE,
        agent_id: Optional[UUIDLike] = None,
        count: Optional[int] = None,
        unique: bool = False,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Memory]:
        """
        Memories in any of the given rooms, newest first.

        Args:
            room_ids: Rooms to read from
            table_name: Memory partition
            agent_id: Only this agent's memories (optional)
            count: Maximum results, applied after uniqueness collapsing
            unique: Return one memory (the newest) per distinct content
            start: Inclusive lower bound on created_at
            end: Inclusive upper bound on created_at
        """
        if not table_name:
            raise InvalidInput("table_name is required")
        if not room_ids:
            return []

        rooms = [to_id(r, "room_id") for r in room_ids]
        sql = (
            f"SELECT {_COLUMNS} FROM memories WHERE type = ? "
            f"AND roomId IN ({self.connections.placeholders(len(rooms))})"
        )
        params: List[Any] = [table_name, *rooms]

        if agent_id is not None:
            sql += " AND agentId = ?"
            params.append(to_id(agent_id, "agent_id"))
        if start is not None:
            sql += " AND createdAt >= ?"
            params.append(to_db_time(start))
        if end is not None:
            sql += " AND createdAt <= ?"
            params.append(to_db_time(end))

        sql += " ORDER BY createdAt DESC, rowid DESC"
        if count is not None and not unique:
            sql += " LIMIT ?"
            params.append(int(count))

        with self.connections.connection() as conn:
            rows = conn.execute(sql, params).fetchall()

        if unique:
            rows = _collapse(rows)
            if count is not None:
                rows = rows[: int(count)]

        return [_row_to_memory(r) for r in rows]

    def search_by_embedding(
        self,
        embedding: List[float],
        table_name: str = DEFAULT_TABLE,
        threshold: float = 0.0,
        count: Optional[int] = 10,
        agent_id: Optional[UUIDLike] = None,
        room_id: Optional[UUIDLike] = None,
        unique: bool = False,
    ) -> List[Memory]:
        """
        Nearest memories by cosine similarity.

        Rows without an embedding are never returned. Results have
        similarity >= threshold, sorted by descending similarity, ties
        newest first, at most count of them. Each result carries its score
        in .similarity.
        """
        if not table_name:
            raise InvalidInput("table_name is required")
        query = check_dimension(embedding, self.embedding_dimension)
        if count is not None and count <= 0:
            return []

        sql = f"SELECT {_COLUMNS} FROM memories WHERE type = ? AND embedding IS NOT NULL"
        params: List[Any] = [table_name]
        if agent_id is not None:
            sql += " AND agentId = ?"
            params.append(to_id(agent_id, "agent_id"))
        if room_id is not None:
            sql += " AND roomId = ?"
            params.append(to_id(room_id, "room_id"))
        sql += " ORDER BY createdAt DESC, rowid DESC"

        with self.connections.connection() as conn:
            rows = conn.execute(sql, params).fetchall()

        ranked = rank_by_similarity(
            query,
            ((row, row["embedding"]) for row in rows),
            threshold=threshold,
            count=None if unique else count,
        )
        if unique:
            seen = set()
            collapsed = []
            for row, score in ranked:
                if row["contentKey"] in seen:
                    continue
                seen.add(row["contentKey"])
                collapsed.append((row, score))
            ranked = collapsed[:count] if count is not None else collapsed

        results = []
        for row, score in ranked:
            memory = _row_to_memory(row)
            memory.similarity = score
            results.append(memory)

        logger.debug(
            f"Embedding search in {table_name}: {len(results)} of {len(rows)} "
            f"candidates >= {threshold}"
        )
        return results

    def search(
        self,
        room_id: UUIDLike,
        embedding: List[float],
        table_name: str = DEFAULT_TABLE,
        threshold: float = 0.0,
        count: int = 10,
        agent_id: Optional[UUIDLike] = None,
        unique: bool = False,
    ) -> List[Memory]:
        """Room-scoped embedding search."""
        return self.search_by_embedding(
            embedding,
            table_name=table_name,
            threshold=threshold,
            count=count,
            agent_id=agent_id,
            room_id=to_id(room_id, "room_id"),
            unique=unique,
        )

    def remove(self, memory_id: UUIDLike, table_name: str = DEFAULT_TABLE) -> int:
        """Delete one memory. Missing ids are a no-op."""
        with self.connections.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM memories WHERE type = ? AND id = ?",
                (table_name, to_id(memory_id, "memory_id")),
            )
            return cursor.rowcount

    def remove_all(self, room_id: UUIDLike, table_name: str = DEFAULT_TABLE) -> int:
        """Delete every memory of a room in one partition."""
        with self.connections.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM memories WHERE type = ? AND roomId = ?",
                (table_name, to_id(room_id, "room_id")),
            )
            removed = cursor.rowcount
        logger.debug(f"Removed {removed} memories from room {room_id} ({table_name})")
        return removed

    def count(
        self,
        room_id: UUIDLike,
        unique: bool = True,
        table_name: str = DEFAULT_TABLE,
    ) -> int:
        """Row count for a room; unique counts distinct content only."""
        if not table_name:
            raise InvalidInput("table_name is required")
        expr = f"COUNT(DISTINCT {CONTENT_KEY})" if unique else "COUNT(*)"
        with self.connections.connection() as conn:
            row = conn.execute(
                f"SELECT {expr} AS count FROM memories WHERE type = ? AND roomId = ?",
                (table_name, to_id(room_id, "room_id")),
            ).fetchone()
        return row["count"]
