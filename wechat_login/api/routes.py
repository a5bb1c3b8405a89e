"""
JSON API Routes
===============

Session-backed endpoints used by the profile page.

Endpoints:
----------
- GET  /api/user: Current user profile
- POST /api/refresh-token: Refresh the stored WeChat access token
- GET  /api/token-status: Ask WeChat whether the stored token is still valid

All endpoints answer 401 when the session has no logged-in user.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..auth.flow import LoginFlow
from ..auth.session import Session
from ..dependencies import get_login_flow, get_session
from ..models import ApiResponse

logger = logging.getLogger(__name__)

api_router = APIRouter(prefix="/api", tags=["api"])


@api_router.get("/user")
async def read_current_user(
    flow: LoginFlow = Depends(get_login_flow),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    """Return the profile cached at login."""
    user = flow.current_user(session)
    return ApiResponse(success=True, data=user.model_dump(mode="json")).model_dump(exclude_none=True)


@api_router.post("/refresh-token")
async def refresh_token(
    flow: LoginFlow = Depends(get_login_flow),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    """
    Refresh the stored access token.

    WeChat failures surface as 500 with the provider message; the previous
    tokens stay in the session.
    """
    await flow.refresh(session)
    logger.info("Access token refreshed for session")
    return ApiResponse(success=True, message="Token refreshed").model_dump(exclude_none=True)


@api_router.get("/token-status")
async def token_status(
    flow: LoginFlow = Depends(get_login_flow),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    status = await flow.token_status(session)
    return ApiResponse(success=True, data=status.model_dump()).model_dump(exclude_none=True)
