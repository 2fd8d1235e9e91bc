"""
Relationship Store - unordered links between users.

(userA, userB) and (userB, userA) are the same relationship. Creation is
idempotent: the existence check and the insert share one transaction.
"""

import logging
from typing import List, Optional

from ..errors import InvalidInput
from .connection import ConnectionManager
from .models import Relationship, UUIDLike, from_db_time, new_id, to_db_time, to_id, utcnow

logger = logging.getLogger(__name__)

_PAIR = "((userA = ? AND userB = ?) OR (userA = ? AND userB = ?))"


def _row_to_relationship(row) -> Relationship:
    return Relationship(
        id=row["id"],
        user_a=row["userA"],
        user_b=row["userB"],
        user_id=row["userId"],
        status=row["status"],
        created_at=from_db_time(row["createdAt"]),
    )


def _pair(user_a: UUIDLike, user_b: UUIDLike):
    if not user_a or not user_b:
        raise InvalidInput("user_a and user_b are required")
    return to_id(user_a, "user_a"), to_id(user_b, "user_b")


class RelationshipStore:
    def __init__(self, connections: ConnectionManager):
        self.connections = connections

    def create(
        self,
        user_a: UUIDLike,
        user_b: UUIDLike,
        status: Optional[str] = None,
    ) -> Relationship:
        """Return the relationship between two users, creating it if needed."""
        a, b = _pair(user_a, user_b)
        with self.connections.transaction() as conn:
            row = conn.execute(
                f"SELECT * FROM relationships WHERE {_PAIR} ORDER BY createdAt LIMIT 1",
                (a, b, b, a),
            ).fetchone()
            if row:
                return _row_to_relationship(row)

            relationship = Relationship(
                id=new_id(), user_a=a, user_b=b, user_id=a, status=status, created_at=utcnow()
            )
            conn.execute(
                """INSERT INTO relationships (id, createdAt, userA, userB, status, userId)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    relationship.id,
                    to_db_time(relationship.created_at),
                    a,
                    b,
                    status,
                    a,
                ),
            )

        logger.debug(f"Created relationship {a} <-> {b}")
        return relationship

    def get(self, user_a: UUIDLike, user_b: UUIDLike) -> Optional[Relationship]:
        a, b = _pair(user_a, user_b)
        with self.connections.connection() as conn:
            row = conn.execute(
                f"SELECT * FROM relationships WHERE {_PAIR} ORDER BY createdAt LIMIT 1",
                (a, b, b, a),
            ).fetchone()
        return _row_to_relationship(row) if row else None

    def list(self, user_id: UUIDLike) -> List[Relationship]:
        """Every relationship the user takes part in, on either side."""
        user = to_id(user_id, "user_id")
        with self.connections.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM relationships WHERE userA = ? OR userB = ? ORDER BY createdAt",
                (user, user),
            ).fetchall()
        return [_row_to_relationship(r) for r in rows]

    def set_status(self, user_a: UUIDLike, user_b: UUIDLike, status: Optional[str]) -> bool:
        a, b = _pair(user_a, user_b)
        with self.connections.transaction() as conn:
            cursor = conn.execute(
                f"UPDATE relationships SET status = ? WHERE {_PAIR}",
                (status, a, b, b, a),
            )
            return cursor.rowcount > 0

    def remove(self, user_a: UUIDLike, user_b: UUIDLike) -> int:
        a, b = _pair(user_a, user_b)
        with self.connections.transaction() as conn:
            return conn.execute(
                f"DELETE FROM relationships WHERE {_PAIR}", (a, b, b, a)
            ).rowcount
