"""
Goal Store - per-room goals with ordered objectives.
"""

import json
import logging
from typing import Any, List, Optional, Union

from .connection import ConnectionManager
from .models import (
    Goal,
    GoalStatus,
    UUIDLike,
    from_db_time,
    optional_id,
    to_db_time,
    to_goal_status,
    to_id,
)

logger = logging.getLogger(__name__)


def _row_to_goal(row) -> Goal:
    objectives = row["objectives"]
    if isinstance(objectives, str):
        objectives = json.loads(objectives)
    return Goal(
        id=row["id"],
        room_id=row["roomId"],
        user_id=row["userId"],
        name=row["name"] or "",
        status=row["status"],
        objectives=objectives,
        description=row["description"],
        created_at=from_db_time(row["createdAt"]),
    )


class GoalStore:
    def __init__(self, connections: ConnectionManager):
        self.connections = connections

    def create(self, goal: Goal) -> Goal:
        with self.connections.transaction() as conn:
            conn.execute(
                """INSERT INTO goals
                   (id, createdAt, userId, name, status, description, roomId, objectives)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    to_id(goal.id),
                    to_db_time(goal.created_at),
                    optional_id(goal.user_id, "user_id"),
                    goal.name,
                    goal.status.value,
                    goal.description,
                    to_id(goal.room_id, "room_id"),
                    goal.objectives_json(),
                ),
            )
        logger.debug(f"Created goal {goal.id} in room {goal.room_id}")
        return goal

    def update(self, goal: Goal) -> bool:
        """Replace name, status, description and objectives. False if missing."""
        with self.connections.transaction() as conn:
            cursor = conn.execute(
                """UPDATE goals
                   SET name = ?, status = ?, description = ?, objectives = ?
                   WHERE id = ?""",
                (
                    goal.name,
                    goal.status.value,
                    goal.description,
                    goal.objectives_json(),
                    to_id(goal.id),
                ),
            )
            return cursor.rowcount > 0

    def update_status(self, goal_id: UUIDLike, status: Union[GoalStatus, str]) -> bool:
        with self.connections.transaction() as conn:
            cursor = conn.execute(
                "UPDATE goals SET status = ? WHERE id = ?",
                (to_goal_status(status).value, to_id(goal_id, "goal_id")),
            )
            return cursor.rowcount > 0

    def get(self, goal_id: UUIDLike) -> Optional[Goal]:
        with self.connections.connection() as conn:
            row = conn.execute(
                "SELECT * FROM goals WHERE id = ?", (to_id(goal_id, "goal_id"),)
            ).fetchone()
        return _row_to_goal(row) if row else None

    def remove(self, goal_id: UUIDLike) -> int:
        with self.connections.transaction() as conn:
            return conn.execute(
                "DELETE FROM goals WHERE id = ?", (to_id(goal_id, "goal_id"),)
            ).rowcount

    def remove_all_for_room(self, room_id: UUIDLike) -> int:
        with self.connections.transaction() as conn:
            return conn.execute(
                "DELETE FROM goals WHERE roomId = ?", (to_id(room_id, "room_id"),)
            ).rowcount

    def list(
        self,
        room_id: UUIDLike,
        user_id: Optional[UUIDLike] = None,
        only_in_progress: bool = False,
        count: Optional[int] = None,
    ) -> List[Goal]:
        """Goals of a room in creation order."""
        sql = "SELECT * FROM goals WHERE roomId = ?"
        params: List[Any] = [to_id(room_id, "room_id")]
        if user_id is not None:
            sql += " AND userId = ?"
            params.append(to_id(user_id, "user_id"))
        if only_in_progress:
            sql += " AND status = ?"
            params.append(GoalStatus.IN_PROGRESS.value)
        sql += " ORDER BY createdAt ASC, rowid ASC"
        if count is not None:
            sql += " LIMIT ?"
            params.append(int(count))

        with self.connections.connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_goal(r) for r in rows]
