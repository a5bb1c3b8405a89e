"""
WeChat web authorization client.

Stateless translator between the login flow and the WeChat OAuth2 HTTP API:

- build the authorization redirect URL
- exchange an authorization code for tokens
- refresh an access token
- fetch the user profile
- check whether an access token is still valid

WeChat reports API errors in the body (errcode/errmsg) with HTTP 200, so every
call inspects both the transport status and the body.
"""

import logging
from typing import Any, Dict, Optional, Type, TypeVar
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, ValidationError

from ..config import Settings
from ..models import TokenBundle, UserProfile
from .errors import ProviderError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_SCOPE = "profile"

# Appended verbatim after the query string; WeChat requires it as-is.
AUTHORIZE_URL_SUFFIX = "#wechat_redirect"

ModelT = TypeVar("ModelT", bound=BaseModel)


class WeChatClient:
    """
    Client for the WeChat OAuth2 endpoints.

    Args:
        app_id: WeChat app id, sent as client_id
        app_secret: WeChat app secret, sent as client_secret
        redirect_uri: Callback URL registered with WeChat
        timeout: Deadline in seconds for each outbound call
        transport: Optional httpx transport (used by tests to mock WeChat)
    """

    def __init__(
        self,
        app_id: str,
        app_secret: Optional[str],
        redirect_uri: str,
        *,
        authorize_url: str = "https://open.weixin.qq.com/connect/oauth2/authorize",
        token_url: str = "https://api.weixin.qq.com/sns/oauth2/access_token",
        refresh_url: str = "https://api.weixin.qq.com/sns/oauth2/refresh_token",
        userinfo_url: str = "https://api.weixin.qq.com/sns/userinfo",
        check_token_url: str = "https://api.weixin.qq.com/sns/auth",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.app_id = app_id
        self.app_secret = app_secret
        self.redirect_uri = redirect_uri
        self.authorize_url = authorize_url
        self.token_url = token_url
        self.refresh_url = refresh_url
        self.userinfo_url = userinfo_url
        self.check_token_url = check_token_url
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "WeChatClient":
        return cls(
            app_id=settings.WECHAT_APP_ID,
            app_secret=settings.WECHAT_APP_SECRET,
            redirect_uri=settings.WECHAT_REDIRECT_URI,
            authorize_url=settings.WECHAT_AUTHORIZE_URL,
            token_url=settings.WECHAT_TOKEN_URL,
            refresh_url=settings.WECHAT_REFRESH_URL,
            userinfo_url=settings.WECHAT_USERINFO_URL,
            check_token_url=settings.WECHAT_CHECK_TOKEN_URL,
            timeout=settings.PROVIDER_TIMEOUT_SECONDS,
            transport=transport,
        )

    # =========================================================================
    # Authorization URL
    # =========================================================================

    def build_authorization_url(self, state: str, scope: str = DEFAULT_SCOPE) -> str:
        """
        Build the URL the browser is redirected to for user consent.

        Args:
            state: CSRF token round-tripped through WeChat
            scope: Requested scope

        Returns:
            Authorization URL including the #wechat_redirect suffix
        """
        params = {
            "client_id": self.app_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": scope,
            "state": state,
        }
        return f"{self.authorize_url}?{urlencode(params)}{AUTHORIZE_URL_SUFFIX}"

    # =========================================================================
    # Token Endpoints
    # =========================================================================

    async def exchange_code_for_token(self, code: str) -> TokenBundle:
        """
        Exchange an authorization code for an access token.

        Raises:
            ProviderError: WeChat rejected the code (expired, reused, ...)
            TransportError: WeChat could not be reached or answered non-2xx
        """
        operation = "exchange_code_for_token"
        data = await self._get_json(
            operation,
            self.token_url,
            {
                "client_id": self.app_id,
                "client_secret": self.app_secret or "",
                "code": code,
                "grant_type": "authorization_code",
            },
        )
        tokens = self._parse(operation, TokenBundle, data)
        logger.info("Exchanged authorization code", extra={"openid": tokens.openid})
        return tokens

    async def refresh_token(self, refresh_token: str) -> TokenBundle:
        """
        Obtain a new access token with a refresh token.

        Raises:
            ProviderError: WeChat rejected the refresh token
            TransportError: WeChat could not be reached or answered non-2xx
        """
        operation = "refresh_token"
        data = await self._get_json(
            operation,
            self.refresh_url,
            {
                "client_id": self.app_id,
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            },
        )
        tokens = self._parse(operation, TokenBundle, data)
        logger.info("Refreshed access token", extra={"openid": tokens.openid})
        return tokens

    # =========================================================================
    # User Endpoints
    # =========================================================================

    async def fetch_profile(self, access_token: str, openid: str) -> UserProfile:
        """
        Fetch the user profile for an access token and its openid.

        Raises:
            ProviderError: WeChat rejected the token
            TransportError: WeChat could not be reached or answered non-2xx
        """
        operation = "fetch_profile"
        data = await self._get_json(
            operation,
            self.userinfo_url,
            {
                "access_token": access_token,
                "openid": openid,
                "lang": "zh_CN",
            },
        )
        return self._parse(operation, UserProfile, data)

    async def check_token_valid(self, access_token: str, openid: str) -> bool:
        """
        Check whether an access token is still accepted by WeChat.

        Never raises: any failure is reported as an invalid token.
        """
        params = {"access_token": access_token, "openid": openid}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.check_token_url, params=params)
            if not response.is_success:
                logger.warning(f"Token check returned HTTP {response.status_code}")
                return False
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Token check failed: {e}")
            return False

        if not isinstance(data, dict):
            return False
        errcode = data.get("errcode")
        # bool is an int subclass; {"errcode": false} is not a success.
        return isinstance(errcode, int) and not isinstance(errcode, bool) and errcode == 0

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _get_json(self, operation: str, url: str, params: Dict[str, str]) -> Dict[str, Any]:
        """
        Issue a GET and return the decoded JSON body.

        Raises:
            TransportError: On connection errors, timeouts, non-2xx statuses
                            or a body that is not a JSON object
            ProviderError: If the body carries a non-zero errcode
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url, params=params)
        except httpx.TimeoutException as e:
            logger.error(f"WeChat {operation} timed out", extra={"operation": operation})
            raise TransportError(operation, detail="request timed out") from e
        except httpx.RequestError as e:
            logger.error(f"WeChat {operation} network error: {e}", extra={"operation": operation})
            raise TransportError(operation, detail=str(e) or type(e).__name__) from e

        if not response.is_success:
            logger.error(
                f"WeChat {operation} returned HTTP {response.status_code}",
                extra={"operation": operation, "status_code": response.status_code},
            )
            raise TransportError(operation, response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"WeChat {operation} returned a non-JSON body", extra={"operation": operation})
            raise TransportError(operation, response.status_code, "malformed response") from e

        if not isinstance(data, dict):
            raise TransportError(operation, response.status_code, "malformed response")

        errcode = data.get("errcode")
        if errcode:
            errmsg = data.get("errmsg", "")
            logger.error(
                f"WeChat {operation} rejected: {errmsg} (errcode {errcode})",
                extra={"operation": operation, "errcode": errcode},
            )
            raise ProviderError(operation, errcode, errmsg)

        return data

    @staticmethod
    def _parse(operation: str, model: Type[ModelT], data: Dict[str, Any]) -> ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error(
                f"WeChat {operation} response missing fields: {e.error_count()} errors",
                extra={"operation": operation},
            )
            raise TransportError(operation, 200, "malformed response") from e
