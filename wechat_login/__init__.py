"""
WeChat Login Service
====================

FastAPI service performing the WeChat web authorization (OAuth2 authorization
code) login, keeping the user profile and tokens in a server-side session.

See wechat_login.main for the application factory and wechat_login.auth for
the login handshake.
"""

__version__ = "1.0.0"
