"""
Login flow exceptions.

Every error raised by the provider client or the login flow derives from
AuthFlowError and carries the HTTP status and user-facing message the web
layer responds with. Provider failures are split into ProviderError (WeChat
rejected the request) and TransportError (the request never produced a usable
answer) so callers can tell an invalid code from an outage.
"""

from typing import Optional


class AuthFlowError(Exception):
    """Base exception for login flow errors"""

    status_code: int = 500
    default_message: str = "Authentication failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class CsrfMismatch(AuthFlowError):
    """Callback state does not match the login this session started."""

    status_code = 403
    default_message = "Authorization state check failed, please log in again"


class MissingAuthorizationCode(AuthFlowError):
    status_code = 400
    default_message = "Authorization failed, no authorization code was returned"


class Unauthenticated(AuthFlowError):
    status_code = 401
    default_message = "Not logged in"


class ProviderCallError(AuthFlowError):
    """A call to the WeChat API failed."""

    status_code = 500
    default_message = "WeChat request failed"

    def __init__(self, operation: str, message: Optional[str] = None):
        self.operation = operation
        super().__init__(message)


class ProviderError(ProviderCallError):
    """WeChat answered with a non-zero errcode."""

    def __init__(self, operation: str, code: int, provider_message: str = ""):
        self.code = code
        self.provider_message = provider_message
        super().__init__(
            operation,
            f"{operation} failed: {provider_message or 'unknown error'} (errcode {code})",
        )


class TransportError(ProviderCallError):
    """
    The request failed below the API level.

    http_status is None when no response was received (connection error or
    timeout).
    """

    def __init__(
        self,
        operation: str,
        http_status: Optional[int] = None,
        detail: Optional[str] = None,
    ):
        self.http_status = http_status
        if detail is None:
            detail = f"HTTP {http_status}" if http_status is not None else "no response"
        super().__init__(operation, f"Request to WeChat failed during {operation}: {detail}")
