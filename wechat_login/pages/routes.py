"""
Page routes: landing page, profile page and logout.

The pages are static HTML; the profile page loads its data from /api/user.
"""

import logging
from pathlib import Path

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse, RedirectResponse

from ..auth.errors import Unauthenticated
from ..auth.flow import LoginFlow
from ..auth.session import Session
from ..dependencies import get_login_flow, get_session

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parent.parent / "static"

pages_router = APIRouter(tags=["pages"])


@pages_router.get("/", include_in_schema=False)
async def index() -> FileResponse:
    return FileResponse(STATIC_DIR / "index.html", media_type="text/html")


@pages_router.get("/user", include_in_schema=False)
async def user_page(
    flow: LoginFlow = Depends(get_login_flow),
    session: Session = Depends(get_session),
):
    try:
        flow.current_user(session)
    except Unauthenticated:
        return RedirectResponse(url="/", status_code=302)
    return FileResponse(STATIC_DIR / "user.html", media_type="text/html")


@pages_router.get("/logout", include_in_schema=False)
async def logout(
    flow: LoginFlow = Depends(get_login_flow),
    session: Session = Depends(get_session),
) -> RedirectResponse:
    """
    Destroy the session and go back to the landing page.

    A failure to clean up is logged; the user is redirected regardless.
    """
    try:
        flow.logout(session)
    except Exception as e:
        logger.error(f"Failed to destroy session on logout: {e}", exc_info=True)
    return RedirectResponse(url="/", status_code=302)
