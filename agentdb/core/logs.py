"""
Activity log - append-only records of what happened in a room.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from .connection import ConnectionManager
from .models import LogEntry, UUIDLike, dump_json, from_db_time, new_id, to_db_time, to_id

logger = logging.getLogger(__name__)


class LogStore:
    def __init__(self, connections: ConnectionManager):
        self.connections = connections

    def log(
        self,
        body: Dict[str, Any],
        user_id: UUIDLike,
        room_id: UUIDLike,
        type: str,
    ) -> str:
        entry_id = new_id()
        with self.connections.transaction() as conn:
            conn.execute(
                """INSERT INTO logs (id, createdAt, userId, roomId, type, body)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    entry_id,
                    to_db_time(None),
                    to_id(user_id, "user_id"),
                    to_id(room_id, "room_id"),
                    type,
                    dump_json(body),
                ),
            )
        logger.debug(f"Logged {type} entry {entry_id} in room {room_id}")
        return entry_id

    def list(
        self,
        room_id: UUIDLike,
        type: Optional[str] = None,
        count: Optional[int] = None,
    ) -> List[LogEntry]:
        """Entries of a room, newest first."""
        sql = "SELECT * FROM logs WHERE roomId = ?"
        params: List[Any] = [to_id(room_id, "room_id")]
        if type is not None:
            sql += " AND type = ?"
            params.append(type)
        sql += " ORDER BY createdAt DESC, rowid DESC"
        if count is not None:
            sql += " LIMIT ?"
            params.append(int(count))

        with self.connections.connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [
            LogEntry(
                id=row["id"],
                user_id=row["userId"],
                room_id=row["roomId"],
                type=row["type"],
                body=json.loads(row["body"]),
                created_at=from_db_time(row["createdAt"]),
            )
            for row in rows
        ]
