"""Unit tests for auth/store.py -- users and the session registry.

Covers:
- create/get by email and id; duplicate email raises IntegrityError
- update_user whitelist and delete_user cascade to sessions
- record_session prunes expired entries and evicts the oldest beyond the cap
- revoke_session is idempotent; has_session ignores expired entries
- purge_expired_sessions removes expired rows across users
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.store import UserStore


@pytest.fixture
def store():
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


def _user(email: str = "a@x.com", role: str = "commuter") -> User:
    return User(email=email, role=role, hashed_password="$2b$04$digest")


def _future(hours: int = 1) -> datetime:
    return datetime.now(timezone.utc) + timedelta(hours=hours)


def _past(hours: int = 1) -> datetime:
    return datetime.now(timezone.utc) - timedelta(hours=hours)


class TestUsers:
    def test_create_and_lookup(self, store: UserStore) -> None:
        uid = store.create_user(_user())
        by_email = store.get_by_email("a@x.com")
        by_id = store.get_by_id(uid)
        assert by_email is not None and by_id is not None
        assert by_email.id == by_id.id == uid
        assert by_id.role == "commuter"
        assert by_id.created_at
        assert by_id.session_tokens == []

    def test_unknown_lookups_return_none(self, store: UserStore) -> None:
        assert store.get_by_email("nobody@x.com") is None
        assert store.get_by_id(999) is None

    def test_email_is_case_sensitive(self, store: UserStore) -> None:
        store.create_user(_user("a@x.com"))
        assert store.get_by_email("A@x.com") is None

    def test_duplicate_email_raises_and_keeps_first(self, store: UserStore) -> None:
        uid = store.create_user(_user(role="admin"))
        with pytest.raises(IntegrityError):
            store.create_user(_user(role="commuter"))
        assert store.get_by_id(uid).role == "admin"
        assert len(store.list_users()) == 1

    def test_list_users_filters_by_role(self, store: UserStore) -> None:
        store.create_user(_user("op1@x.com", "operator"))
        store.create_user(_user("op2@x.com", "operator"))
        store.create_user(_user("c@x.com", "commuter"))
        assert [u.email for u in store.list_users(role="operator")] == ["op1@x.com", "op2@x.com"]
        assert len(store.list_users()) == 3

    def test_update_user(self, store: UserStore) -> None:
        uid = store.create_user(_user())
        assert store.update_user(uid, role="admin", email="b@x.com")
        updated = store.get_by_id(uid)
        assert updated.role == "admin"
        assert updated.email == "b@x.com"

    def test_update_user_rejects_unknown_field(self, store: UserStore) -> None:
        uid = store.create_user(_user())
        with pytest.raises(ValueError):
            store.update_user(uid, id=5)

    def test_update_missing_user_returns_false(self, store: UserStore) -> None:
        assert store.update_user(42, role="admin") is False

    def test_delete_user_removes_sessions(self, store: UserStore) -> None:
        uid = store.create_user(_user())
        store.record_session(uid, "tok-1", _future())
        assert store.delete_user(uid)
        assert store.get_by_id(uid) is None
        assert store.list_sessions(uid) == []
        assert store.delete_user(uid) is False


class TestSessionRegistry:
    def test_record_and_check(self, store: UserStore) -> None:
        uid = store.create_user(_user())
        store.record_session(uid, "tok-1", _future())
        assert store.has_session(uid, "tok-1")
        assert not store.has_session(uid, "tok-2")
        assert store.get_by_id(uid).session_tokens == ["tok-1"]

    def test_sessions_are_per_user(self, store: UserStore) -> None:
        a = store.create_user(_user("a@x.com"))
        b = store.create_user(_user("b@x.com"))
        store.record_session(a, "tok-a", _future())
        assert not store.has_session(b, "tok-a")

    def test_expired_session_not_counted(self, store: UserStore) -> None:
        uid = store.create_user(_user())
        store.record_session(uid, "old", _past())
        assert not store.has_session(uid, "old")
        assert store.list_sessions(uid) == []

    def test_record_prunes_expired_entries(self, store: UserStore) -> None:
        uid = store.create_user(_user())
        store.record_session(uid, "old", _past())
        store.record_session(uid, "new", _future())
        # The expired row is gone, not merely hidden.
        assert store.purge_expired_sessions() == 0
        assert [s.token for s in store.list_sessions(uid)] == ["new"]

    def test_cap_evicts_oldest(self, store: UserStore) -> None:
        uid = store.create_user(_user())
        for token in ("t1", "t2", "t3"):
            store.record_session(uid, token, _future(), max_sessions=2)
        assert [s.token for s in store.list_sessions(uid)] == ["t2", "t3"]
        assert not store.has_session(uid, "t1")

    def test_revoke_is_idempotent(self, store: UserStore) -> None:
        uid = store.create_user(_user())
        store.record_session(uid, "tok-1", _future())
        store.record_session(uid, "tok-2", _future())
        assert store.revoke_session(uid, "tok-1") is True
        assert store.revoke_session(uid, "tok-1") is False
        assert store.has_session(uid, "tok-2")

    def test_purge_expired_across_users(self, store: UserStore) -> None:
        a = store.create_user(_user("a@x.com"))
        b = store.create_user(_user("b@x.com"))
        store.record_session(a, "a-old", _past())
        # Recording prunes that user's expired rows, so the live one goes first.
        store.record_session(b, "b-live", _future())
        store.record_session(b, "b-old", _past(2))
        assert store.purge_expired_sessions() == 2
        assert [s.token for s in store.list_sessions(b)] == ["b-live"]

    def test_list_sessions_exposes_timestamps(self, store: UserStore) -> None:
        uid = store.create_user(_user())
        store.record_session(uid, "tok", _future())
        (session,) = store.list_sessions(uid)
        assert session.user_id == uid
        assert session.issued_at < session.expires_at

    def test_ping(self, store: UserStore) -> None:
        assert store.ping() is True
