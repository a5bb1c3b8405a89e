"""
Authentication Package

This package handles the WeChat web authorization login for the service.

Key responsibilities:
- Building the WeChat authorization URL and calling the WeChat OAuth2 API
- CSRF state handshake between /auth/login and /auth/callback
- Server-side sessions holding the user profile and tokens
- Token refresh and validity checks

Modules:
- client: WeChatClient, the stateless provider client
- flow: LoginFlow, the per-session login orchestrator
- session: session store, signed session cookie and middleware
- errors: exception taxonomy mapped to HTTP responses
- routes: /auth/login and /auth/callback

The authentication flow:
1. Browser hits /auth/login; a CSRF state is stored in the session
2. Browser is redirected to WeChat and the user consents
3. WeChat redirects to /auth/callback with code and state
4. The state is consumed and checked, the code exchanged, the profile fetched
5. Profile and tokens are stored in the session; browser lands on /user
"""

from .client import WeChatClient
from .errors import (
    AuthFlowError,
    CsrfMismatch,
    MissingAuthorizationCode,
    ProviderCallError,
    ProviderError,
    TransportError,
    Unauthenticated,
)
from .flow import LoginFlow
from .session import Session, SessionMiddleware, SessionStore

__all__ = [
    "WeChatClient",
    "LoginFlow",
    "Session",
    "SessionMiddleware",
    "SessionStore",
    "AuthFlowError",
    "CsrfMismatch",
    "MissingAuthorizationCode",
    "ProviderCallError",
    "ProviderError",
    "TransportError",
    "Unauthenticated",
]
