"""Tests for the goal store."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from agentdb import Goal, GoalStatus, InvalidInput, Objective


def _goal(room_id, user_id, name, status=GoalStatus.IN_PROGRESS, minutes=0):
    return Goal(
        room_id=room_id,
        user_id=user_id,
        name=name,
        status=status,
        objectives=[{"description": "step one"}, Objective("step two", completed=True)],
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=minutes),
    )


def test_create_and_list_in_creation_order(db, room_id, user_id):
    db.create_goal(_goal(room_id, user_id, "second", minutes=5))
    db.create_goal(_goal(room_id, user_id, "first", minutes=0))

    goals = db.get_goals(room_id)
    assert [g.name for g in goals] == ["first", "second"]
    assert goals[0].status is GoalStatus.IN_PROGRESS
    assert [o.description for o in goals[0].objectives] == ["step one", "step two"]
    assert goals[0].objectives[1].completed is True


def test_filters(db, room_id, user_id):
    other_user = str(uuid.uuid4())
    db.create_goal(_goal(room_id, user_id, "active"))
    db.create_goal(_goal(room_id, user_id, "done", status=GoalStatus.DONE, minutes=1))
    db.create_goal(_goal(room_id, other_user, "theirs", minutes=2))
    db.create_goal(_goal(str(uuid.uuid4()), user_id, "elsewhere"))

    assert [g.name for g in db.get_goals(room_id, user_id=user_id)] == ["active", "done"]
    assert [g.name for g in db.get_goals(room_id, only_in_progress=True)] == ["active", "theirs"]
    assert [g.name for g in db.get_goals(room_id, count=1)] == ["active"]


def test_update_replaces_fields(db, room_id, user_id):
    goal = db.create_goal(_goal(room_id, user_id, "draft"))
    goal.name = "final"
    goal.status = GoalStatus.DONE
    goal.objectives = [Objective("only step", completed=True)]
    assert db.update_goal(goal) is True

    stored = db.goals.get(goal.id)
    assert stored.name == "final"
    assert stored.status is GoalStatus.DONE
    assert [o.to_dict() for o in stored.objectives] == [
        {"description": "only step", "completed": True}
    ]

    assert db.update_goal(Goal(room_id=room_id, name="ghost")) is False


def test_update_status(db, room_id, user_id):
    goal = db.create_goal(_goal(room_id, user_id, "g"))
    assert db.update_goal_status(goal.id, "FAILED") is True
    assert db.goals.get(goal.id).status is GoalStatus.FAILED

    with pytest.raises(InvalidInput):
        db.update_goal_status(goal.id, "PAUSED")


def test_remove(db, room_id, user_id):
    goal = db.create_goal(_goal(room_id, user_id, "a"))
    db.create_goal(_goal(room_id, user_id, "b"))

    assert db.remove_goal(goal.id) == 1
    assert db.remove_goal(goal.id) == 0
    assert db.remove_all_goals(room_id) == 1
    assert db.get_goals(room_id) == []


def test_unknown_status_on_model(room_id):
    with pytest.raises(InvalidInput):
        Goal(room_id=room_id, name="g", status="PAUSED")
