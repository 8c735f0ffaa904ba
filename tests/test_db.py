"""Tests for the sqlite persistence layer."""

from __future__ import annotations

import pytest

from english_tutor import db
from english_tutor.db import init_db


@pytest.fixture(autouse=True)
def _setup_db(tmp_path):
    db.DB_PATH = tmp_path / "test.db"
    init_db()


def _user(email: str = "a@x.com"):
    return db.upsert_user(email, name="Ana", interests=["music", "travel"])


class TestUsers:
    def test_upsert_creates_and_normalizes_email(self):
        user = db.upsert_user("  A@X.com ", name="Ana")
        assert user.email == "a@x.com"
        assert db.get_user_by_email("A@x.COM").id == user.id

    def test_upsert_updates_existing(self):
        first = _user()
        second = db.upsert_user("a@x.com", level="Advanced")
        assert second.id == first.id
        assert second.level == "Advanced"
        assert second.name == "Ana"

    def test_list_columns_round_trip(self):
        assert _user().interests == ["music", "travel"]

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValueError):
            db.upsert_user("a@x.com", favourite_colour="blue")

    def test_rejects_empty_email(self):
        with pytest.raises(ValueError):
            db.upsert_user("   ")

    def test_unknown_email(self):
        assert db.get_user_by_email("missing@x.com") is None


class TestTurns:
    def test_recent_turns_newest_first_and_limited(self):
        user = _user()
        ids = [db.insert_turn(user.id, f"message {i}", "{}").id for i in range(7)]
        recent = db.fetch_recent_turns(user.id, limit=5)
        assert [t.id for t in recent] == list(reversed(ids))[:5]

    def test_recent_turns_can_exclude_one(self):
        user = _user()
        first = db.insert_turn(user.id, "one", "{}")
        second = db.insert_turn(user.id, "two", "{}")
        recent = db.fetch_recent_turns(user.id, exclude_turn_id=second.id)
        assert [t.id for t in recent] == [first.id]

    def test_recent_turns_scoped_to_user(self):
        user = _user()
        other = _user("b@x.com")
        db.insert_turn(other.id, "not mine", "{}")
        assert db.fetch_recent_turns(user.id) == []

    def test_all_turns_chronological(self):
        user = _user()
        ids = [db.insert_turn(user.id, f"m{i}", "{}").id for i in range(3)]
        assert [t.id for t in db.fetch_all_turns(user.id)] == ids
        assert db.count_turns(user.id) == 3

    def test_update_requires_owner(self):
        owner = _user()
        intruder = _user("b@x.com")
        turn = db.insert_turn(owner.id, "original", "reply")
        assert db.update_turn_message(turn.id, intruder.id, "hacked") is False
        assert db.update_turn_response(turn.id, intruder.id, "hacked") is False
        stored = db.get_turn(turn.id)
        assert stored.user_message == "original"
        assert stored.model_response == "reply"

    def test_update_by_owner(self):
        owner = _user()
        turn = db.insert_turn(owner.id, "original", "reply")
        assert db.update_turn_message(turn.id, owner.id, "edited") is True
        assert db.get_turn(turn.id).user_message == "edited"

    def test_delete_requires_owner_and_is_not_repeatable(self):
        owner = _user()
        intruder = _user("b@x.com")
        turn = db.insert_turn(owner.id, "hello", "reply")
        assert db.delete_turn(turn.id, intruder.id) is False
        assert db.delete_turn(turn.id, owner.id) is True
        assert db.delete_turn(turn.id, owner.id) is False
        assert db.get_turn(turn.id) is None


class TestPronunciationAttempts:
    def test_attempts_newest_first(self):
        user = _user()
        first = db.insert_pronunciation_attempt(
            user_id=user.id, word="cat", audio_url="file:///a.wav", accuracy=60, feedback="{}"
        )
        second = db.insert_pronunciation_attempt(
            user_id=user.id, word="dog", audio_url="file:///b.wav", accuracy=80, feedback="{}"
        )
        attempts = db.fetch_pronunciation_attempts(user.id)
        assert [a.id for a in attempts] == [second.id, first.id]
        assert [a.id for a in db.fetch_pronunciation_attempts(user.id, limit=1)] == [second.id]

    def test_accuracy_out_of_range_is_a_storage_error(self):
        from english_tutor.errors import StorageError

        user = _user()
        with pytest.raises(StorageError):
            db.insert_pronunciation_attempt(
                user_id=user.id, word="cat", audio_url="x", accuracy=101, feedback="{}"
            )
