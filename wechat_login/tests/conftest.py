"""
Shared fixtures for the WeChat login tests.

WeChat is replaced by FakeWeChat, an httpx.MockTransport handler that records
every request and answers from a per-path table.
"""

from typing import Any, Dict, List, Tuple, Union

import httpx
import pytest
from fastapi.testclient import TestClient

from wechat_login.auth.client import WeChatClient
from wechat_login.auth.session import SessionStore
from wechat_login.config import Settings
from wechat_login.main import create_app

TOKEN_PATH = "/sns/oauth2/access_token"
REFRESH_PATH = "/sns/oauth2/refresh_token"
USERINFO_PATH = "/sns/userinfo"
CHECK_PATH = "/sns/auth"

TOKEN_RESPONSE = {
    "access_token": "ACCESS_TOKEN_1",
    "expires_in": 7200,
    "refresh_token": "REFRESH_TOKEN_1",
    "openid": "o6_bmjrPTlm6_2sgVt7hMZOPfL2M",
    "scope": "snsapi_userinfo",
}

REFRESHED_TOKEN_RESPONSE = {
    "access_token": "ACCESS_TOKEN_2",
    "expires_in": 7200,
    "refresh_token": "REFRESH_TOKEN_2",
    "openid": "o6_bmjrPTlm6_2sgVt7hMZOPfL2M",
    "scope": "snsapi_userinfo",
}

USERINFO_RESPONSE = {
    "openid": "o6_bmjrPTlm6_2sgVt7hMZOPfL2M",
    "nickname": "Test User",
    "sex": 1,
    "province": "Guangdong",
    "city": "Shenzhen",
    "country": "CN",
    "headimgurl": "https://thirdwx.qlogo.cn/mmopen/test/132",
    "privilege": ["PRIVILEGE1", "PRIVILEGE2"],
    "unionid": "o6_bmasdasdsad6_2sgVt7hMZOPfL",
}

Outcome = Union[Tuple[int, Any], Exception]


class FakeWeChat:
    """
    MockTransport handler standing in for the WeChat API.

    routes maps a URL path to (status_code, body) or to an exception to raise.
    Dict bodies are sent as JSON, strings as plain text.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.routes: Dict[str, Outcome] = {
            TOKEN_PATH: (200, TOKEN_RESPONSE),
            REFRESH_PATH: (200, REFRESHED_TOKEN_RESPONSE),
            USERINFO_PATH: (200, USERINFO_RESPONSE),
            CHECK_PATH: (200, {"errcode": 0, "errmsg": "ok"}),
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.routes[request.url.path]
        if isinstance(outcome, Exception):
            raise outcome
        status_code, body = outcome
        if isinstance(body, (dict, list)):
            return httpx.Response(status_code, json=body)
        return httpx.Response(status_code, text=body)

    def calls(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]


@pytest.fixture
def settings():
    """Settings for tests (explicit values override any environment)."""
    return Settings(
        WECHAT_APP_ID="wx-test-app",
        WECHAT_APP_SECRET="test-app-secret",
        WECHAT_REDIRECT_URI="http://localhost:3000/auth/callback",
        SESSION_SECRET="test-session-secret-0123456789abcdef",
        APP_ENV="test",
    )


@pytest.fixture
def fake_wechat():
    return FakeWeChat()


@pytest.fixture
def wechat_client(settings, fake_wechat):
    return WeChatClient.from_settings(settings, transport=httpx.MockTransport(fake_wechat))


@pytest.fixture
def session_store(settings):
    return SessionStore(settings.SESSION_MAX_AGE_SECONDS)


@pytest.fixture
def app(settings, wechat_client, session_store):
    return create_app(
        settings=settings,
        provider_client=wechat_client,
        session_store=session_store,
    )


@pytest.fixture
def client(app):
    return TestClient(app)
