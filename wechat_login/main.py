"""
FastAPI Application Factory
===========================

Main entry point for the WeChat login service.

Architecture:
    Browser -> this service -> WeChat OAuth2 API

Routers:
    - /auth/*   : Login handshake (redirect to WeChat, callback)
    - /api/*    : Session-backed JSON API (user profile, token refresh/status)
    - /, /user, /logout : Pages
    - /health   : Health check endpoint

Environment Variables:
    - WECHAT_APP_ID: WeChat app id
    - WECHAT_APP_SECRET: WeChat app secret
    - WECHAT_REDIRECT_URI: Callback URL registered with WeChat
    - SESSION_SECRET: Secret for signing session cookies (random if unset)
    - SESSION_MAX_AGE_SECONDS: Session lifetime (default: 86400)
    - APP_ENV: "production" enables Secure cookies (default: development)
    - LOG_LEVEL: Logging level (default: INFO)

Running the Service:
    Development:
        uvicorn wechat_login.main:app --reload --port 3000

    Production:
        APP_ENV=production uvicorn wechat_login.main:app --host 0.0.0.0 --port 3000

    Sessions live in process memory, so run a single worker.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Dict, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import api_router
from .auth.client import WeChatClient
from .auth.errors import AuthFlowError, ProviderCallError
from .auth.flow import LoginFlow
from .auth.routes import auth_router
from .auth.session import SessionMiddleware, SessionStore
from .config import Settings, get_settings, validate_configuration
from .models import ApiResponse
from .pages.routes import pages_router

SERVICE_NAME = "wechat-login"
SERVICE_VERSION = "1.0.0"


# Configure structured JSON logging
def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup: configure logging, report configuration problems.
    Shutdown: drop all sessions.
    """
    settings: Settings = app.state.settings

    setup_logging(settings.LOG_LEVEL)
    logger = logging.getLogger("wechat_login.main")

    report = validate_configuration(settings)
    for error in report["errors"]:
        logger.error(f"Configuration error: {error}")
    for warning in report["warnings"]:
        logger.warning(f"Configuration warning: {warning}")

    logger.info(
        "WeChat login service started",
        extra={
            "app_id": settings.WECHAT_APP_ID or "not configured",
            "redirect_uri": settings.WECHAT_REDIRECT_URI or "not configured",
            "environment": settings.APP_ENV,
        }
    )

    yield

    logger.info("Shutting down WeChat login service")
    app.state.session_store.clear()
    logger.info("Cleared session store")


# Create FastAPI application
def create_app(
    settings: Optional[Settings] = None,
    provider_client: Optional[WeChatClient] = None,
    session_store: Optional[SessionStore] = None,
) -> FastAPI:
    """
    Application factory function.

    Args:
        settings: Settings to use (defaults to get_settings())
        provider_client: WeChat client (defaults to one built from settings)
        session_store: Session store (defaults to a fresh in-memory store)

    Returns:
        FastAPI: Configured application instance
    """
    if settings is None:
        settings = get_settings()
    if provider_client is None:
        provider_client = WeChatClient.from_settings(settings)
    # An empty store is falsy (it defines __len__), so test against None.
    if session_store is None:
        session_store = SessionStore(settings.SESSION_MAX_AGE_SECONDS)

    app = FastAPI(
        title="WeChat Login Service",
        description="WeChat web authorization login with server-side sessions",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.session_store = session_store
    app.state.provider_client = provider_client
    app.state.login_flow = LoginFlow(provider_client, default_scope=settings.WECHAT_DEFAULT_SCOPE)

    app.add_middleware(SessionMiddleware, store=session_store, settings=settings)

    # Configure CORS
    if settings.allowed_origins_list:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins_list,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    app.include_router(auth_router)
    app.include_router(api_router)
    app.include_router(pages_router)

    # Health check endpoint
    @app.get("/health", tags=["System"])
    async def health_check() -> Dict[str, str]:
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION
        }

    @app.exception_handler(AuthFlowError)
    async def auth_flow_exception_handler(request: Request, exc: AuthFlowError) -> JSONResponse:
        """
        Render login flow errors as {success: false, message}.
        """
        logger = logging.getLogger("wechat_login.main")
        if isinstance(exc, ProviderCallError):
            logger.error(
                f"WeChat call failed: {exc.message}",
                extra={
                    "path": request.url.path,
                    "operation": exc.operation,
                    "exception_type": type(exc).__name__
                }
            )
        else:
            logger.warning(
                f"Request rejected: {exc.message}",
                extra={"path": request.url.path, "status_code": exc.status_code}
            )

        return JSONResponse(
            status_code=exc.status_code,
            content=ApiResponse(success=False, message=exc.message).model_dump(exclude_none=True),
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Log unhandled errors and return a standardized error response.
        """
        logger = logging.getLogger("wechat_login.main")
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )

        return JSONResponse(
            status_code=500,
            content=ApiResponse(success=False, message="An unexpected error occurred").model_dump(exclude_none=True),
        )

    return app


# Create app instance for uvicorn
app = create_app()


if __name__ == "__main__":
    settings = get_settings()

    uvicorn.run(
        "wechat_login.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=not settings.is_production,
        log_level=settings.LOG_LEVEL.lower()
    )
