"""
Rooms, participants and accounts.

A participant row links one user to one room (at most one row per pair)
and carries the tri-state follow flag: FOLLOWED, MUTED or unset (NULL).
"""

import json
import logging
from typing import List, Optional, Union

from .connection import ConnectionManager
from .models import (
    Account,
    Actor,
    Participant,
    ParticipantState,
    UUIDLike,
    dump_json,
    new_id,
    to_db_time,
    to_id,
    to_participant_state,
)

logger = logging.getLogger(__name__)


def _load_details(value) -> dict:
    if isinstance(value, str):
        return json.loads(value) if value else {}
    return value or {}


def _row_to_account(row) -> Account:
    return Account(
        id=row["id"],
        name=row["name"],
        username=row["username"],
        email=row["email"] or "",
        avatar_url=row["avatarUrl"],
        details=_load_details(row["details"]),
    )


class RoomStore:
    """Rooms, room membership and the accounts behind participants."""

    def __init__(self, connections: ConnectionManager):
        self.connections = connections

    # -------------------------------------------------------------------------
    # Rooms
    # -------------------------------------------------------------------------

    def create_room(self, room_id: Optional[UUIDLike] = None) -> str:
        """Create a room (no-op if it exists). Returns its id."""
        room = to_id(room_id, "room_id") if room_id is not None else new_id()
        with self.connections.transaction() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO rooms (id, createdAt) VALUES (?, ?)",
                (room, to_db_time(None)),
            )
        return room

    def get_room(self, room_id: UUIDLike) -> Optional[str]:
        with self.connections.connection() as conn:
            row = conn.execute(
                "SELECT id FROM rooms WHERE id = ?", (to_id(room_id, "room_id"),)
            ).fetchone()
        return row["id"] if row else None

    def remove_room(self, room_id: UUIDLike) -> bool:
        """Remove a room and its participants in one transaction."""
        room = to_id(room_id, "room_id")
        with self.connections.transaction() as conn:
            conn.execute("DELETE FROM participants WHERE roomId = ?", (room,))
            removed = conn.execute("DELETE FROM rooms WHERE id = ?", (room,)).rowcount
        logger.debug(f"Removed room {room}")
        return removed > 0

    # -------------------------------------------------------------------------
    # Participants
    # -------------------------------------------------------------------------

    def add_participant(self, user_id: UUIDLike, room_id: UUIDLike) -> bool:
        """Add a member. False (not an error) when already a member."""
        with self.connections.transaction() as conn:
            cursor = conn.execute(
                """INSERT OR IGNORE INTO participants (id, createdAt, userId, roomId)
                   VALUES (?, ?, ?, ?)""",
                (new_id(), to_db_time(None), to_id(user_id, "user_id"), to_id(room_id, "room_id")),
            )
            return cursor.rowcount > 0

    def remove_participant(self, user_id: UUIDLike, room_id: UUIDLike) -> bool:
        """Remove a member. False when there was nothing to remove."""
        with self.connections.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM participants WHERE userId = ? AND roomId = ?",
                (to_id(user_id, "user_id"), to_id(room_id, "room_id")),
            )
            return cursor.rowcount > 0

    def set_participant_state(
        self,
        room_id: UUIDLike,
        user_id: UUIDLike,
        state: Optional[Union[ParticipantState, str]],
    ) -> None:
        """Upsert the follow flag; None clears it."""
        value = to_participant_state(state).value if state is not None else None
        with self.connections.transaction() as conn:
            conn.execute(
                """INSERT INTO participants (id, createdAt, userId, roomId, userState)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(userId, roomId) DO UPDATE SET userState = excluded.userState""",
                (new_id(), to_db_time(None), to_id(user_id, "user_id"), to_id(room_id, "room_id"), value),
            )

    def get_participant_state(
        self, room_id: UUIDLike, user_id: UUIDLike
    ) -> Optional[ParticipantState]:
        with self.connections.connection() as conn:
            row = conn.execute(
                "SELECT userState FROM participants WHERE roomId = ? AND userId = ?",
                (to_id(room_id, "room_id"), to_id(user_id, "user_id")),
            ).fetchone()
        if not row or row["userState"] is None:
            return None
        return ParticipantState(row["userState"])

    def get_participants_for_room(self, room_id: UUIDLike) -> List[str]:
        with self.connections.connection() as conn:
            rows = conn.execute(
                "SELECT userId FROM participants WHERE roomId = ? ORDER BY createdAt, rowid",
                (to_id(room_id, "room_id"),),
            ).fetchall()
        return [row["userId"] for row in rows]

    def get_participants_for_account(self, user_id: UUIDLike) -> List[Participant]:
        """Memberships of a user, with the account attached when it exists."""
        with self.connections.connection() as conn:
            rows = conn.execute(
                """SELECT p.id, p.userId, p.roomId, p.userState, p.last_message_read,
                          a.id AS accountId, a.name, a.username, a.email,
                          a.avatarUrl, a.details
                   FROM participants p
                   LEFT JOIN accounts a ON a.id = p.userId
                   WHERE p.userId = ?
                   ORDER BY p.createdAt, p.rowid""",
                (to_id(user_id, "user_id"),),
            ).fetchall()

        participants = []
        for row in rows:
            account = None
            if row["accountId"] is not None:
                account = Account(
                    id=row["accountId"],
                    name=row["name"],
                    username=row["username"],
                    email=row["email"] or "",
                    avatar_url=row["avatarUrl"],
                    details=_load_details(row["details"]),
                )
            participants.append(Participant(
                id=row["id"],
                user_id=row["userId"],
                room_id=row["roomId"],
                user_state=ParticipantState(row["userState"]) if row["userState"] else None,
                last_message_read=row["last_message_read"],
                account=account,
            ))
        return participants

    def get_rooms_for_participant(self, user_id: UUIDLike) -> List[str]:
        with self.connections.connection() as conn:
            rows = conn.execute(
                "SELECT roomId FROM participants WHERE userId = ? ORDER BY createdAt, rowid",
                (to_id(user_id, "user_id"),),
            ).fetchall()
        return [row["roomId"] for row in rows]

    def get_rooms_for_participants(self, user_ids: List[UUIDLike]) -> List[str]:
        if not user_ids:
            return []
        users = [to_id(u, "user_id") for u in user_ids]
        with self.connections.connection() as conn:
            rows = conn.execute(
                f"""SELECT DISTINCT roomId FROM participants
                    WHERE userId IN ({self.connections.placeholders(len(users))})
                    ORDER BY roomId""",
                users,
            ).fetchall()
        return [row["roomId"] for row in rows]

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    def create_account(self, account: Account) -> bool:
        """Insert an account. False when the id is already taken."""
        with self.connections.transaction() as conn:
            cursor = conn.execute(
                """INSERT OR IGNORE INTO accounts
                   (id, createdAt, name, username, email, avatarUrl, details)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    to_id(account.id),
                    to_db_time(None),
                    account.name,
                    account.username,
                    account.email or "",
                    account.avatar_url,
                    dump_json(account.details or {}),
                ),
            )
            created = cursor.rowcount > 0

        if not created:
            logger.warning(f"Account {account.id} already exists")
        return created

    def get_account_by_id(self, user_id: UUIDLike) -> Optional[Account]:
        with self.connections.connection() as conn:
            row = conn.execute(
                "SELECT * FROM accounts WHERE id = ?", (to_id(user_id, "user_id"),)
            ).fetchone()
        return _row_to_account(row) if row else None

    def get_actor_details(self, room_id: UUIDLike) -> List[Actor]:
        """Display entities for every participant of a room that has an account."""
        with self.connections.connection() as conn:
            rows = conn.execute(
                """SELECT a.id, a.name, a.username, a.details
                   FROM participants p
                   JOIN accounts a ON a.id = p.userId
                   WHERE p.roomId = ?
                   ORDER BY p.createdAt, p.rowid""",
                (to_id(room_id, "room_id"),),
            ).fetchall()
        return [
            Actor(
                id=row["id"],
                name=row["name"],
                username=row["username"],
                details=_load_details(row["details"]),
            )
            for row in rows
        ]
