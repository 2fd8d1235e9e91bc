"""Tests for rooms, participants and accounts."""

import uuid

import pytest

from agentdb import Account, InvalidInput, ParticipantState


def _uuid():
    return str(uuid.uuid4())


class TestRooms:
    def test_create_get_remove(self, db):
        room = db.create_room()
        assert db.get_room(room) == room
        assert db.create_room(room) == room

        assert db.remove_room(room) is True
        assert db.get_room(room) is None
        assert db.remove_room(room) is False

    def test_remove_room_drops_participants(self, db, user_id):
        room = db.create_room()
        db.add_participant(user_id, room)
        db.remove_room(room)
        assert db.get_participants_for_room(room) == []


class TestParticipants:
    def test_add_is_idempotent(self, db, user_id, room_id):
        assert db.add_participant(user_id, room_id) is True
        assert db.add_participant(user_id, room_id) is False
        assert db.get_participants_for_room(room_id) == [user_id]

    def test_remove(self, db, user_id, room_id):
        db.add_participant(user_id, room_id)
        assert db.remove_participant(user_id, room_id) is True
        assert db.remove_participant(user_id, room_id) is False
        assert db.get_rooms_for_participant(user_id) == []

    def test_rooms_for_participants(self, db, user_id):
        other = _uuid()
        rooms = sorted(_uuid() for _ in range(3))
        db.add_participant(user_id, rooms[0])
        db.add_participant(user_id, rooms[1])
        db.add_participant(other, rooms[1])
        db.add_participant(other, rooms[2])

        assert db.get_rooms_for_participant(user_id) == [rooms[0], rooms[1]]
        assert db.get_rooms_for_participants([user_id, other]) == rooms
        assert db.get_rooms_for_participants([]) == []

    def test_user_state(self, db, user_id, room_id):
        db.add_participant(user_id, room_id)
        assert db.get_participant_user_state(room_id, user_id) is None

        db.set_participant_user_state(room_id, user_id, ParticipantState.FOLLOWED)
        assert db.get_participant_user_state(room_id, user_id) is ParticipantState.FOLLOWED

        db.set_participant_user_state(room_id, user_id, "MUTED")
        assert db.get_participant_user_state(room_id, user_id) is ParticipantState.MUTED

        db.set_participant_user_state(room_id, user_id, None)
        assert db.get_participant_user_state(room_id, user_id) is None

        assert db.get_participants_for_room(room_id) == [user_id]

    def test_state_on_non_member_creates_membership(self, db, user_id, room_id):
        db.set_participant_user_state(room_id, user_id, "FOLLOWED")
        assert db.get_participants_for_room(room_id) == [user_id]

    def test_invalid_state_rejected(self, db, user_id, room_id):
        with pytest.raises(InvalidInput):
            db.set_participant_user_state(room_id, user_id, "BLOCKED")

    def test_participants_for_account(self, db, user_id, room_id):
        db.create_account(Account(id=user_id, name="Ada", username="ada", email="ada@example.com"))
        db.add_participant(user_id, room_id)
        db.set_participant_user_state(room_id, user_id, "FOLLOWED")

        [participant] = db.get_participants_for_account(user_id)
        assert participant.room_id == room_id
        assert participant.user_state is ParticipantState.FOLLOWED
        assert participant.account.username == "ada"

        anonymous = _uuid()
        db.add_participant(anonymous, room_id)
        [participant] = db.get_participants_for_account(anonymous)
        assert participant.account is None


class TestAccounts:
    def test_create_and_get(self, db, user_id):
        account = Account(
            id=user_id, name="Grace", username="grace", email="g@example.com",
            avatar_url="https://example.com/g.png", details={"summary": "admiral"},
        )
        assert db.create_account(account) is True
        assert db.create_account(account) is False

        loaded = db.get_account_by_id(user_id)
        assert loaded.name == "Grace"
        assert loaded.avatar_url == "https://example.com/g.png"
        assert loaded.details == {"summary": "admiral"}

        assert db.get_account_by_id(_uuid()) is None

    def test_actor_details(self, db, room_id):
        alice, bob, ghost = _uuid(), _uuid(), _uuid()
        db.create_account(Account(id=alice, name="Alice", username="alice", details={"tagline": "hi"}))
        db.create_account(Account(id=bob, name="Bob", username="bob"))
        for user in (alice, bob, ghost):
            db.add_participant(user, room_id)

        actors = db.get_actor_details(room_id)
        assert [a.name for a in actors] == ["Alice", "Bob"]
        assert actors[0].details == {"tagline": "hi"}
