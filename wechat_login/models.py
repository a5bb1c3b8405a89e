"""
Data Models Module

This module defines Pydantic models for provider payloads, session state
and API responses.

Models are organized by functional area:
- Provider models (token bundles, user profiles)
- Session models (per-browser session state)
- Response models (JSON envelopes returned by the API)
"""

import time
from enum import IntEnum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Provider Models
# ============================================================================

class Sex(IntEnum):
    """Gender code as reported by WeChat."""
    UNKNOWN = 0
    MALE = 1
    FEMALE = 2


class TokenBundle(BaseModel):
    """Credentials returned by the code exchange and refresh endpoints."""

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(..., min_length=1, description="Access token for profile calls")
    refresh_token: str = Field(..., description="Token used to obtain a new access token")
    expires_in: int = Field(..., ge=0, description="Access token lifetime in seconds")
    openid: str = Field(..., min_length=1, description="User identifier scoped to this app")
    scope: str = Field(default="", description="Scopes granted by the user")


class StoredTokens(TokenBundle):
    """TokenBundle as kept in the session, with its absolute expiry."""

    expires_at: int = Field(..., description="Expiry as epoch milliseconds")

    @classmethod
    def from_bundle(cls, bundle: TokenBundle, now_ms: Optional[int] = None) -> "StoredTokens":
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        return cls(
            **bundle.model_dump(),
            expires_at=now_ms + bundle.expires_in * 1000,
        )

    def is_expired(self, now_ms: int) -> bool:
        return now_ms >= self.expires_at


class UserProfile(BaseModel):
    """User profile returned by the userinfo endpoint."""

    openid: str = Field(..., min_length=1, description="User identifier scoped to this app")
    nickname: str = Field(default="", description="Display name")
    sex: Sex = Field(default=Sex.UNKNOWN, description="0 unknown, 1 male, 2 female")
    province: str = Field(default="")
    city: str = Field(default="")
    country: str = Field(default="")
    headimgurl: str = Field(default="", description="Avatar URL")
    unionid: Optional[str] = Field(None, description="Identifier shared across the developer's apps")
    privilege: Optional[List[str]] = Field(None, description="Privilege list, e.g. WeChat card holders")

    @field_validator("sex", mode="before")
    @classmethod
    def coerce_sex(cls, v: Any) -> Sex:
        """Unrecognised codes are reported as unknown."""
        try:
            return Sex(int(v))
        except (TypeError, ValueError):
            return Sex.UNKNOWN


# ============================================================================
# Session Models
# ============================================================================

class SessionState(BaseModel):
    """
    Server-side state for one browser session.

    pending_csrf_state only lives between /auth/login and the callback.
    user and tokens are set together on a successful callback.
    """
    pending_csrf_state: Optional[str] = None
    user: Optional[UserProfile] = None
    tokens: Optional[StoredTokens] = None


# ============================================================================
# Response Models
# ============================================================================

class ApiResponse(BaseModel):
    """Standard JSON envelope used by every /api and /auth response."""
    success: bool = Field(..., description="Whether the request succeeded")
    message: Optional[str] = Field(None, description="Human-readable message")
    data: Optional[Dict[str, Any]] = Field(None, description="Response payload")


class TokenStatus(BaseModel):
    """Result of /api/token-status."""
    valid: bool
    expired: bool
    expiresAt: int
