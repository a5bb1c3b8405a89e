"""
Session Tests

Tests for wechat_login/auth/session.py: signed cookie encoding, store
expiry, atomic CSRF state consumption and the per-request handle.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from wechat_login.auth.session import (
    SESSION_ISSUER,
    Session,
    SessionStore,
    create_session_cookie,
    read_session_cookie,
)
from wechat_login.models import SessionState, UserProfile


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


# ============================================================================
# Cookie Encoding
# ============================================================================

class TestSessionCookie:

    def test_round_trip(self, settings):
        token = create_session_cookie("sid-123", settings)

        assert read_session_cookie(token, settings) == "sid-123"

    def test_missing_cookie(self, settings):
        assert read_session_cookie(None, settings) is None
        assert read_session_cookie("", settings) is None

    def test_tampered_cookie(self, settings):
        token = create_session_cookie("sid-123", settings)
        header, payload, signature = token.split(".")
        tampered = f"{header}.{payload}.{signature[::-1]}"

        assert read_session_cookie(tampered, settings) is None

    def test_wrong_secret(self, settings):
        other = settings.model_copy(update={"SESSION_SECRET": "another-secret-0123456789abcdefghij"})
        token = create_session_cookie("sid-123", other)

        assert read_session_cookie(token, settings) is None

    def test_expired_cookie(self, settings):
        past = datetime.now(timezone.utc) - timedelta(hours=25)
        token = jwt.encode(
            {"sid": "sid-123", "iat": past, "exp": past + timedelta(hours=24), "iss": SESSION_ISSUER},
            settings.SESSION_SECRET,
            algorithm="HS256",
        )

        assert read_session_cookie(token, settings) is None

    def test_foreign_issuer(self, settings):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sid": "sid-123", "iat": now, "exp": now + timedelta(hours=1), "iss": "someone-else"},
            settings.SESSION_SECRET,
            algorithm="HS256",
        )

        assert read_session_cookie(token, settings) is None

    def test_garbage(self, settings):
        assert read_session_cookie("not-a-jwt", settings) is None


# ============================================================================
# Session Store
# ============================================================================

class TestSessionStore:

    def test_get_unknown(self):
        assert SessionStore(60).get("missing") is None

    def test_set_and_get_copies_state(self):
        store = SessionStore(60)
        state = SessionState(pending_csrf_state="abc")
        store.set("sid", state)

        state.pending_csrf_state = "changed"
        loaded = store.get("sid")
        loaded.pending_csrf_state = "changed again"

        assert store.get("sid").pending_csrf_state == "abc"

    def test_expiry_is_absolute(self):
        clock = FakeClock()
        store = SessionStore(60, clock=clock)
        store.set("sid", SessionState(pending_csrf_state="abc"))

        clock.now += 50
        store.set("sid", SessionState(user=UserProfile(openid="o")))
        clock.now += 10

        assert store.get("sid") is None
        assert len(store) == 0

    def test_expired_session_starts_fresh_on_set(self):
        clock = FakeClock()
        store = SessionStore(60, clock=clock)
        store.set("sid", SessionState())
        clock.now += 61

        store.set("sid", SessionState(pending_csrf_state="new"))
        clock.now += 59

        assert store.get("sid").pending_csrf_state == "new"

    def test_delete(self):
        store = SessionStore(60)
        store.set("sid", SessionState())

        assert store.delete("sid") is True
        assert store.delete("sid") is False

    def test_take_pending_state_is_single_use(self):
        store = SessionStore(60)
        store.set("sid", SessionState(pending_csrf_state="abc", user=UserProfile(openid="o")))

        assert store.take_pending_state("sid") == "abc"
        assert store.take_pending_state("sid") is None
        assert store.get("sid").user.openid == "o"

    def test_take_pending_state_unknown_session(self):
        assert SessionStore(60).take_pending_state("missing") is None

    def test_purge_expired(self):
        clock = FakeClock()
        store = SessionStore(60, clock=clock)
        store.set("old", SessionState())
        clock.now += 30
        store.set("new", SessionState())
        clock.now += 31

        assert store.purge_expired() == 1
        assert store.get("new") is not None

    @pytest.mark.parametrize("access", ["get", "set"])
    def test_abandoned_sessions_are_swept_on_access(self, access):
        clock = FakeClock()
        store = SessionStore(60, clock=clock, cleanup_interval_seconds=30)
        for i in range(50):
            store.set(f"abandoned-{i}", SessionState(pending_csrf_state="x"))
        clock.now += 600

        if access == "get":
            store.get("someone-else")
        else:
            store.set("someone-else", SessionState())

        assert all(sid not in store._entries for sid in (f"abandoned-{i}" for i in range(50)))
        assert len(store) == (1 if access == "set" else 0)

    def test_sweep_is_throttled(self):
        clock = FakeClock()
        store = SessionStore(60, clock=clock, cleanup_interval_seconds=300)
        store.set("old", SessionState())
        clock.now += 61

        store.get("other")
        assert len(store) == 1

        clock.now += 300
        store.get("other")
        assert len(store) == 0


# ============================================================================
# Session Handle
# ============================================================================

class TestSession:

    def test_id_allocated_on_first_save(self):
        store = SessionStore(60)
        session = Session(store)
        assert session.session_id is None

        session.save()

        assert session.session_id
        assert session.modified is True
        assert store.get(session.session_id) is not None

    def test_save_keeps_id(self):
        store = SessionStore(60)
        session = Session(store)
        session.save()
        session_id = session.session_id

        session.state.pending_csrf_state = "abc"
        session.save()

        assert session.session_id == session_id
        assert store.get(session_id).pending_csrf_state == "abc"

    def test_take_pending_without_id(self):
        session = Session(SessionStore(60), state=SessionState(pending_csrf_state="abc"))

        assert session.take_pending_csrf_state() is None
        assert session.state.pending_csrf_state is None

    def test_destroy(self):
        store = SessionStore(60)
        session = Session(store)
        session.state.user = UserProfile(openid="o")
        session.save()
        session_id = session.session_id

        session.destroy()
        session.destroy()

        assert session.destroyed is True
        assert session.session_id is None
        assert session.state == SessionState()
        assert store.get(session_id) is None
