"""
Server-side Session Management
==============================

Sessions are kept in an in-memory store keyed by a random session id. The
browser only receives the id, wrapped in a signed JWT cookie, so tampered or
expired cookies are rejected before the store is consulted.

Pieces:
- create_session_cookie / read_session_cookie: signed cookie encoding
- SessionStore: thread-safe session id -> SessionState map with absolute expiry
- Session: per-request handle used by the login flow
- SessionMiddleware: loads the session before the route runs and writes the
  cookie afterwards
"""

import logging
import secrets
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Tuple

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from ..config import Settings
from ..models import SessionState

logger = logging.getLogger(__name__)

SESSION_ISSUER = "wechat-login"

# Minimum seconds between full sweeps of expired sessions
CLEANUP_INTERVAL_SECONDS = 60


# =============================================================================
# Cookie Encoding
# =============================================================================

def create_session_cookie(session_id: str, settings: Settings) -> str:
    """
    Create the signed cookie value for a session id.

    Args:
        session_id: Server-side session identifier
        settings: Application settings (secret, algorithm, lifetime)

    Returns:
        Encoded JWT string
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sid": session_id,
        "iat": now,
        "exp": now + timedelta(seconds=settings.SESSION_MAX_AGE_SECONDS),
        "iss": SESSION_ISSUER,
    }
    return jwt.encode(payload, settings.SESSION_SECRET, algorithm=settings.SESSION_JWT_ALGORITHM)


def read_session_cookie(token: Optional[str], settings: Settings) -> Optional[str]:
    """
    Verify a session cookie and return the session id it carries.

    Returns:
        Session id, or None if the cookie is missing, expired or invalid
    """
    if not token:
        return None

    try:
        decoded = jwt.decode(
            token,
            settings.SESSION_SECRET,
            algorithms=[settings.SESSION_JWT_ALGORITHM],
            issuer=SESSION_ISSUER,
            options={"require": ["exp", "iat", "sid"]},
        )
    except ExpiredSignatureError:
        logger.debug("Session cookie expired")
        return None
    except InvalidTokenError as e:
        logger.warning(f"Invalid session cookie: {e}")
        return None

    session_id = decoded.get("sid")
    if not isinstance(session_id, str) or not session_id:
        return None
    return session_id


# =============================================================================
# Session Store
# =============================================================================

class SessionStore:
    """
    In-memory session storage.

    Entries expire max_age_seconds after they are first saved; later saves
    keep the original deadline. States are copied on the way in and out so
    a request only changes the store through set() or take_pending_state().

    Expired entries are dropped when read, and every access sweeps the whole
    map at most once per cleanup_interval_seconds, so abandoned sessions do
    not accumulate.
    """

    def __init__(
        self,
        max_age_seconds: int,
        clock: Callable[[], float] = time.time,
        cleanup_interval_seconds: float = CLEANUP_INTERVAL_SECONDS,
    ):
        self.max_age_seconds = max_age_seconds
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[SessionState, float]] = {}
        self._lock = threading.Lock()
        self._last_cleanup = clock()

    def get(self, session_id: str) -> Optional[SessionState]:
        with self._lock:
            self._cleanup_if_due()
            entry = self._live_entry(session_id)
            if entry is None:
                return None
            return entry[0].model_copy(deep=True)

    def set(self, session_id: str, state: SessionState) -> None:
        with self._lock:
            self._cleanup_if_due()
            entry = self._live_entry(session_id)
            expires_at = entry[1] if entry else self._clock() + self.max_age_seconds
            self._entries[session_id] = (state.model_copy(deep=True), expires_at)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._entries.pop(session_id, None) is not None

    def take_pending_state(self, session_id: str) -> Optional[str]:
        """
        Atomically read and clear the pending CSRF state of a session.

        At most one caller ever receives a given state value.
        """
        with self._lock:
            entry = self._live_entry(session_id)
            if entry is None:
                return None
            state, expires_at = entry
            pending = state.pending_csrf_state
            if pending is not None:
                cleared = state.model_copy(update={"pending_csrf_state": None})
                self._entries[session_id] = (cleared, expires_at)
            return pending

    def purge_expired(self) -> int:
        """Drop expired sessions. Returns the number removed."""
        with self._lock:
            return self._purge_expired()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _cleanup_if_due(self) -> None:
        # Caller holds the lock.
        if self._clock() - self._last_cleanup < self.cleanup_interval_seconds:
            return
        self._purge_expired()

    def _purge_expired(self) -> int:
        # Caller holds the lock.
        now = self._clock()
        self._last_cleanup = now
        expired = [sid for sid, (_, expires_at) in self._entries.items() if expires_at <= now]
        for sid in expired:
            del self._entries[sid]
        if expired:
            logger.info(f"Purged {len(expired)} expired sessions")
        return len(expired)

    def _live_entry(self, session_id: str) -> Optional[Tuple[SessionState, float]]:
        # Caller holds the lock.
        entry = self._entries.get(session_id)
        if entry is None:
            return None
        if entry[1] <= self._clock():
            del self._entries[session_id]
            return None
        return entry


# =============================================================================
# Per-request Session Handle
# =============================================================================

class Session:
    """
    Session bound to one request.

    The id is allocated lazily on the first save(), so anonymous visitors
    that never start a login do not get a cookie.
    """

    def __init__(self, store: SessionStore, session_id: Optional[str] = None, state: Optional[SessionState] = None):
        self.store = store
        self.session_id = session_id
        self.state = state if state is not None else SessionState()
        self.modified = False
        self.destroyed = False

    def save(self) -> None:
        if self.session_id is None:
            self.session_id = secrets.token_urlsafe(32)
        self.store.set(self.session_id, self.state)
        self.modified = True
        self.destroyed = False

    def take_pending_csrf_state(self) -> Optional[str]:
        """Consume the pending CSRF state; a second call returns None."""
        self.state.pending_csrf_state = None
        if self.session_id is None:
            return None
        return self.store.take_pending_state(self.session_id)

    def destroy(self) -> None:
        """Remove all session state. Safe to call repeatedly."""
        if self.session_id is not None:
            self.store.delete(self.session_id)
        self.session_id = None
        self.state = SessionState()
        self.modified = False
        self.destroyed = True


# =============================================================================
# Middleware
# =============================================================================

class SessionMiddleware(BaseHTTPMiddleware):
    """
    Binds a Session to request.state.session and maintains the cookie.
    """

    def __init__(self, app: ASGIApp, store: SessionStore, settings: Settings):
        super().__init__(app)
        self.store = store
        self.settings = settings

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        cookie_name = self.settings.SESSION_COOKIE_NAME
        cookie = request.cookies.get(cookie_name)

        session_id = read_session_cookie(cookie, self.settings)
        state = self.store.get(session_id) if session_id else None
        if state is None:
            session_id = None

        session = Session(self.store, session_id, state)
        request.state.session = session

        response = await call_next(request)

        if session.destroyed or (cookie and session.session_id is None):
            response.delete_cookie(cookie_name, path="/")
        elif session.modified and session.session_id is not None:
            response.set_cookie(
                cookie_name,
                create_session_cookie(session.session_id, self.settings),
                max_age=self.settings.SESSION_MAX_AGE_SECONDS,
                path="/",
                httponly=True,
                secure=self.settings.session_cookie_secure,
                samesite="lax",
            )

        return response
