"""Tests for the relationship store."""

import uuid

import pytest

from agentdb import InvalidInput


def test_create_is_order_insensitive_and_idempotent(db):
    a, b = str(uuid.uuid4()), str(uuid.uuid4())

    created = db.create_relationship(a, b)
    assert created.user_a == a
    assert created.user_b == b
    assert created.user_id == a

    again = db.create_relationship(b, a)
    assert again.id == created.id
    assert db.get_relationship(b, a).id == created.id


def test_list_covers_both_sides(db):
    a, b, c = (str(uuid.uuid4()) for _ in range(3))
    db.create_relationship(a, b)
    db.create_relationship(c, a)
    db.create_relationship(b, c)

    related = db.get_relationships(a)
    assert len(related) == 2
    assert all(r.involves(a) for r in related)


def test_missing_relationship(db):
    assert db.get_relationship(str(uuid.uuid4()), str(uuid.uuid4())) is None


def test_status_and_remove(db):
    a, b = str(uuid.uuid4()), str(uuid.uuid4())
    db.create_relationship(a, b)

    assert db.relationships.set_status(b, a, "FRIENDS") is True
    assert db.get_relationship(a, b).status == "FRIENDS"

    assert db.relationships.remove(b, a) == 1
    assert db.get_relationship(a, b) is None


def test_empty_ids_rejected(db):
    with pytest.raises(InvalidInput):
        db.create_relationship("", str(uuid.uuid4()))
