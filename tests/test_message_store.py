"""
Tests for the message store and user directory functions in storage.py.

Tests cover:
- send_message validation and persistence
- list_for_user / list_between membership and ordering
- mark_read authorization and idempotency
- count_unread
- upsert_user
- StorageError wrapping
"""

import pytest
from sqlalchemy.exc import OperationalError

from creatorhub import storage, utils
from creatorhub.errors import AuthorizationError, NotFoundError, StorageError, ValidationError
from creatorhub.models import Message
from creatorhub.storage import (
    count_unread,
    get_message,
    get_user,
    list_between,
    list_for_user,
    mark_read,
    send_message,
    upsert_user,
)
from tests.conftest import ts


class TestSendMessage:
    """Test message creation."""

    def test_send_creates_unread_message(self, db, users):
        message = send_message(db, "alice", "bob", "hi")

        assert message.id
        assert message.sender_id == "alice"
        assert message.recipient_id == "bob"
        assert message.body == "hi"
        assert message.is_read is False
        assert message.created_at == ts(1)
        assert message.pair_key == "alice:bob"

    def test_body_is_stripped(self, db, users):
        message = send_message(db, "alice", "bob", "  hello there \n")

        assert message.body == "hello there"

    def test_subject_is_optional(self, db, users):
        message = send_message(db, "carol", "bob", "Casting call", subject="Spring campaign")

        assert message.subject == "Spring campaign"
        assert send_message(db, "carol", "bob", "again", subject="  ").subject is None

    @pytest.mark.parametrize("body", ["", "   ", "\n\t"])
    def test_empty_body_rejected(self, db, users, body):
        with pytest.raises(ValidationError):
            send_message(db, "alice", "bob", body)

        assert list_between(db, "alice", "bob") == []

    def test_oversized_body_rejected(self, db, users):
        with pytest.raises(ValidationError):
            send_message(db, "alice", "bob", "x" * (storage.settings.MAX_BODY_LENGTH + 1))

    def test_self_message_rejected(self, db, users):
        with pytest.raises(ValidationError):
            send_message(db, "alice", "alice", "note to self")

    def test_unknown_recipient(self, db, users):
        with pytest.raises(NotFoundError):
            send_message(db, "alice", "nobody", "hi")

        assert list_for_user(db, "alice") == []

    def test_unknown_sender(self, db, users):
        with pytest.raises(NotFoundError):
            send_message(db, "ghost", "alice", "boo")

    def test_same_sender_order_survives_stalled_clock(self, db, users, monkeypatch):
        monkeypatch.setattr(utils, "utc_timestamp", lambda: ts(100))

        first = send_message(db, "alice", "bob", "one")
        second = send_message(db, "alice", "bob", "two")

        assert first.created_at == ts(100)
        assert second.created_at > first.created_at
        assert [m.body for m in list_between(db, "alice", "bob")] == ["one", "two"]


class TestListing:
    """Test list_for_user and list_between."""

    def test_list_for_user_includes_both_directions(self, db, users):
        send_message(db, "alice", "bob", "a->b")
        send_message(db, "bob", "alice", "b->a")
        send_message(db, "carol", "alice", "c->a")
        send_message(db, "bob", "carol", "b->c")

        bodies = {m.body for m in list_for_user(db, "alice")}

        assert bodies == {"a->b", "b->a", "c->a"}

    def test_list_for_user_empty(self, db, users):
        assert list_for_user(db, "alice") == []

    def test_list_between_is_pair_only_and_oldest_first(self, db, users):
        send_message(db, "alice", "bob", "hi")
        send_message(db, "carol", "bob", "unrelated")
        send_message(db, "bob", "alice", "hello")
        send_message(db, "alice", "carol", "unrelated too")
        send_message(db, "alice", "bob", "how are you")

        thread = list_between(db, "alice", "bob")

        assert [m.body for m in thread] == ["hi", "hello", "how are you"]
        assert all({m.sender_id, m.recipient_id} == {"alice", "bob"} for m in thread)
        created = [m.created_at for m in thread]
        assert created == sorted(created)

    def test_list_between_is_symmetric(self, db, users):
        send_message(db, "alice", "bob", "hi")
        send_message(db, "bob", "alice", "hello")

        forward = [m.id for m in list_between(db, "alice", "bob")]
        backward = [m.id for m in list_between(db, "bob", "alice")]

        assert forward == backward

    def test_repeated_reads_are_stable(self, db, users, monkeypatch):
        # Different senders at the same instant share a timestamp
        monkeypatch.setattr(utils, "utc_timestamp", lambda: ts(50))
        send_message(db, "alice", "bob", "one")
        send_message(db, "bob", "alice", "two")

        first = [m.id for m in list_between(db, "alice", "bob")]
        second = [m.id for m in list_between(db, "alice", "bob")]

        assert first == second

    def test_participants_are_loaded(self, db, users):
        send_message(db, "alice", "bob", "hi")

        [message] = list_for_user(db, "bob")

        assert message.sender.first_name == "Alice"
        assert message.recipient.first_name == "Bob"


class TestMarkRead:
    """Test the read-state transition."""

    def test_recipient_marks_read(self, db, users):
        message = send_message(db, "alice", "bob", "hi")

        assert mark_read(db, message.id, "bob") is True
        assert get_message(db, message.id).is_read is True

    def test_mark_read_is_idempotent(self, db, users):
        message = send_message(db, "alice", "bob", "hi")

        assert mark_read(db, message.id, "bob") is True
        assert mark_read(db, message.id, "bob") is False
        assert get_message(db, message.id).is_read is True

    def test_sender_cannot_mark_read(self, db, users):
        message = send_message(db, "alice", "bob", "hi")

        with pytest.raises(AuthorizationError):
            mark_read(db, message.id, "alice")

        assert get_message(db, message.id).is_read is False

    def test_third_party_cannot_mark_read(self, db, users):
        message = send_message(db, "alice", "bob", "hi")

        with pytest.raises(AuthorizationError):
            mark_read(db, message.id, "carol")

        assert count_unread(db, "bob") == 1

    def test_unknown_message(self, db, users):
        with pytest.raises(NotFoundError):
            mark_read(db, "does-not-exist", "bob")


class TestCountUnread:
    def test_new_user_has_zero(self, db, users):
        assert count_unread(db, "alice") == 0

    def test_counts_across_peers(self, db, users):
        send_message(db, "alice", "bob", "1")
        send_message(db, "carol", "bob", "2")
        third = send_message(db, "carol", "bob", "3")
        send_message(db, "bob", "alice", "outgoing")
        mark_read(db, third.id, "bob")

        assert count_unread(db, "bob") == 2
        assert count_unread(db, "alice") == 1


class TestUserDirectory:
    def test_upsert_creates_user(self, db):
        user = upsert_user(db, "dana", email="dana@example.com", role="admin")

        assert user.id == "dana"
        assert user.role == "admin"
        assert get_user(db, "dana").email == "dana@example.com"

    def test_upsert_defaults_to_creator(self, db):
        assert upsert_user(db, "erin").role == "creator"

    def test_upsert_updates_given_fields_only(self, db):
        upsert_user(db, "dana", email="dana@example.com", first_name="Dana")

        user = upsert_user(db, "dana", last_name="Smith")

        assert user.first_name == "Dana"
        assert user.last_name == "Smith"
        assert user.email == "dana@example.com"

    def test_unknown_role_rejected(self, db):
        with pytest.raises(ValidationError):
            upsert_user(db, "dana", role="superuser")

    def test_duplicate_email_rejected(self, db):
        upsert_user(db, "dana", email="shared@example.com")

        with pytest.raises(ValidationError):
            upsert_user(db, "erin", email="shared@example.com")


class TestStorageErrors:
    def test_failed_insert_raises_storage_error_and_persists_nothing(self, db, users, monkeypatch):
        def broken_commit():
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(db, "commit", broken_commit)

        with pytest.raises(StorageError):
            send_message(db, "alice", "bob", "hi")

        monkeypatch.undo()
        assert db.query(Message).count() == 0
