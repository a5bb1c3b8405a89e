"""
Authentication routes for the WeChat login handshake.

This module implements the browser-facing half of the OAuth2 authorization
code flow; the protocol work lives in LoginFlow and WeChatClient. Errors
raised here are rendered as JSON by the AuthFlowError handler in main.py.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse

from ..dependencies import get_login_flow, get_session
from .flow import LoginFlow
from .session import Session


# =============================================================================
# Router Setup
# =============================================================================

auth_router = APIRouter(
    prefix="/auth",
    tags=["authentication"],
)


# =============================================================================
# Login Endpoint
# =============================================================================

@auth_router.get("/login", response_class=RedirectResponse)
async def login(
    scope: Optional[str] = Query(None, description="Requested WeChat scope"),
    flow: LoginFlow = Depends(get_login_flow),
    session: Session = Depends(get_session),
):
    """
    Initiate the login by redirecting to WeChat.

    Stores a fresh CSRF state in the session and redirects to the WeChat
    authorization page.
    """
    authorization_url = flow.begin_login(session, scope)
    return RedirectResponse(url=authorization_url, status_code=302)


# =============================================================================
# Callback Endpoint
# =============================================================================

@auth_router.get("/callback", response_class=RedirectResponse)
async def callback(
    code: Optional[str] = Query(None, description="Authorization code from WeChat"),
    state: Optional[str] = Query(None, description="State parameter for CSRF protection"),
    flow: LoginFlow = Depends(get_login_flow),
    session: Session = Depends(get_session),
):
    """
    Handle the redirect back from WeChat.

    Responses:
        302 to /user on success
        403 if state does not match the pending login
        400 if no code was returned
        500 if WeChat rejected the code or could not be reached
    """
    await flow.complete_login(session, state, code)
    return RedirectResponse(url="/user", status_code=302)
