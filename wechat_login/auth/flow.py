"""
Login flow orchestration.

Drives the per-session handshake:

    Anonymous --begin_login--> PendingAuth --complete_login--> Authenticated
    PendingAuth --state mismatch / missing code--> Anonymous
    Authenticated --logout--> Anonymous

The CSRF state is single use: complete_login consumes it before anything else
is checked, so replaying a callback URL always fails with CsrfMismatch.
"""

import logging
import secrets
import time
from typing import Callable, Optional

from ..models import StoredTokens, TokenBundle, TokenStatus, UserProfile
from .client import DEFAULT_SCOPE, WeChatClient
from .errors import CsrfMismatch, MissingAuthorizationCode, Unauthenticated
from .session import Session

logger = logging.getLogger(__name__)

# Bytes of entropy in each CSRF state token
STATE_TOKEN_BYTES = 16


class LoginFlow:
    """
    Session orchestrator for the WeChat login.

    Args:
        client: Provider client used for all remote calls
        default_scope: Scope requested when the caller names none
        clock: Returns the current time in seconds (injectable for tests)
    """

    def __init__(
        self,
        client: WeChatClient,
        default_scope: str = DEFAULT_SCOPE,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.default_scope = default_scope
        self._clock = clock

    def begin_login(self, session: Session, requested_scope: Optional[str] = None) -> str:
        """
        Start a login and return the URL to redirect the browser to.

        A fresh CSRF state replaces any login already pending in the session.
        """
        state = secrets.token_hex(STATE_TOKEN_BYTES)
        session.state.pending_csrf_state = state
        session.save()

        scope = requested_scope or self.default_scope
        logger.info("Starting WeChat login", extra={"scope": scope})
        return self.client.build_authorization_url(state, scope)

    async def complete_login(
        self,
        session: Session,
        received_state: Optional[str],
        code: Optional[str],
    ) -> UserProfile:
        """
        Handle the provider callback.

        Raises:
            CsrfMismatch: received_state differs from the pending state, or no
                          login is pending
            MissingAuthorizationCode: code is absent (no remote call is made)
            ProviderError, TransportError: the exchange or profile fetch failed;
                                           the session is left without user
                                           and tokens
        """
        expected_state = session.take_pending_csrf_state()

        if (
            not expected_state
            or not received_state
            or not secrets.compare_digest(received_state.encode(), expected_state.encode())
        ):
            logger.warning(
                "Rejected callback with mismatched state",
                extra={"login_pending": expected_state is not None},
            )
            raise CsrfMismatch()

        if not code:
            logger.warning("Callback without authorization code")
            raise MissingAuthorizationCode()

        bundle = await self.client.exchange_code_for_token(code)
        profile = await self.client.fetch_profile(bundle.access_token, bundle.openid)

        session.state.user = profile
        session.state.tokens = StoredTokens.from_bundle(bundle, self._now_ms())
        session.save()

        logger.info("WeChat login completed", extra={"openid": profile.openid})
        return profile

    def current_user(self, session: Session) -> UserProfile:
        """
        Raises:
            Unauthenticated: If nobody is logged in on this session
        """
        if session.state.user is None:
            raise Unauthenticated()
        return session.state.user

    async def refresh(self, session: Session) -> TokenBundle:
        """
        Replace the stored tokens with freshly refreshed ones.

        The old tokens stay in place if the refresh fails.

        Raises:
            Unauthenticated: If no tokens are stored
            ProviderError, TransportError: If WeChat refused or was unreachable
        """
        tokens = session.state.tokens
        if tokens is None:
            raise Unauthenticated()

        bundle = await self.client.refresh_token(tokens.refresh_token)
        session.state.tokens = StoredTokens.from_bundle(bundle, self._now_ms())
        session.save()
        return bundle

    async def check_token(self, session: Session) -> bool:
        """
        Ask WeChat whether the stored access token is still valid.

        Raises:
            Unauthenticated: If no tokens are stored
        """
        tokens = session.state.tokens
        if tokens is None:
            raise Unauthenticated()
        return await self.client.check_token_valid(tokens.access_token, tokens.openid)

    async def token_status(self, session: Session) -> TokenStatus:
        """
        Report the stored token's validity (asked of WeChat) and its local
        expiry, both measured against this flow's clock.

        Raises:
            Unauthenticated: If no tokens are stored
        """
        valid = await self.check_token(session)
        tokens = session.state.tokens
        return TokenStatus(
            valid=valid,
            expired=tokens.is_expired(self._now_ms()),
            expiresAt=tokens.expires_at,
        )

    def logout(self, session: Session) -> None:
        session.destroy()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)
