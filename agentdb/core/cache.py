"""
Cache Store - per-agent key/value storage

Last write wins. No expiry is enforced here; callers own their TTL policy.
Every operation is scoped by agent id, so agents never see each other's keys.
"""

import logging
from typing import List, Optional

from .connection import ConnectionManager, escape_like
from .models import UUIDLike, optional_id, to_db_time, to_id

logger = logging.getLogger(__name__)


class CacheStore:
    def __init__(self, connections: ConnectionManager):
        self.connections = connections

    def get(self, agent_id: UUIDLike, key: str) -> Optional[str]:
        """Get value by key (None when absent)."""
        with self.connections.connection() as conn:
            row = conn.execute(
                "SELECT value FROM cache WHERE key = ? AND agentId = ?",
                (key, to_id(agent_id, "agent_id")),
            ).fetchone()
        return row["value"] if row else None

    def set(self, agent_id: UUIDLike, key: str, value: str) -> bool:
        """Insert or overwrite a value."""
        with self.connections.transaction() as conn:
            conn.execute(
                """INSERT INTO cache (key, agentId, value, createdAt)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(key, agentId) DO UPDATE SET
                       value = excluded.value,
                       createdAt = excluded.createdAt""",
                (key, to_id(agent_id, "agent_id"), value, to_db_time(None)),
            )
        return True

    def delete(self, agent_id: UUIDLike, key: str) -> bool:
        """Delete a key. Returns whether a row was removed."""
        with self.connections.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM cache WHERE key = ? AND agentId = ?",
                (key, to_id(agent_id, "agent_id")),
            )
            return cursor.rowcount > 0

    def delete_prefix(self, prefix: str, agent_id: Optional[UUIDLike] = None) -> int:
        """Delete every key starting with prefix (for one agent, or all agents)."""
        pattern = escape_like(prefix) + "%"
        agent = optional_id(agent_id, "agent_id")
        with self.connections.transaction() as conn:
            if agent is None:
                cursor = conn.execute(
                    "DELETE FROM cache WHERE key LIKE ? ESCAPE '\\'", (pattern,)
                )
            else:
                cursor = conn.execute(
                    "DELETE FROM cache WHERE key LIKE ? ESCAPE '\\' AND agentId = ?",
                    (pattern, agent),
                )
            removed = cursor.rowcount

        if removed:
            logger.debug(f"Dropped {removed} cache entries with prefix '{prefix}'")
        return removed

    def trim_prefix(self, agent_id: UUIDLike, prefix: str, keep: int) -> int:
        """Keep only the newest `keep` keys under prefix for one agent."""
        pattern = escape_like(prefix) + "%"
        agent = to_id(agent_id, "agent_id")
        with self.connections.transaction() as conn:
            cursor = conn.execute(
                """DELETE FROM cache
                   WHERE agentId = ? AND key LIKE ? ESCAPE '\\'
                   AND key NOT IN (
                       SELECT key FROM cache
                       WHERE agentId = ? AND key LIKE ? ESCAPE '\\'
                       ORDER BY createdAt DESC, rowid DESC
                       LIMIT ?
                   )""",
                (agent, pattern, agent, pattern, max(int(keep), 0)),
            )
            return cursor.rowcount

    def keys(self, agent_id: UUIDLike, prefix: str = "") -> List[str]:
        """Keys for one agent, optionally limited to a prefix."""
        with self.connections.connection() as conn:
            rows = conn.execute(
                "SELECT key FROM cache WHERE agentId = ? AND key LIKE ? ESCAPE '\\' ORDER BY key",
                (to_id(agent_id, "agent_id"), escape_like(prefix) + "%"),
            ).fetchall()
        return [row["key"] for row in rows]
