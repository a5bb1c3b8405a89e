from fastapi import HTTPException, Request, status

from .auth.flow import LoginFlow
from .auth.session import Session


def get_login_flow(request: Request) -> LoginFlow:
    """
    Dependency returning the LoginFlow created by create_app().
    """
    flow = getattr(request.app.state, "login_flow", None)
    if flow is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Login flow not initialized"
        )
    return flow


def get_session(request: Request) -> Session:
    """
    Dependency returning the session bound by SessionMiddleware.
    """
    session = getattr(request.state, "session", None)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Session middleware not installed"
        )
    return session
