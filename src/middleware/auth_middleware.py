"""
Authentication Middleware

Validates the session token (access_token cookie, or a Bearer
Authorization header) and attaches the caller's identity to the request.
"""

import json
import logging
from typing import Callable, Dict, Any, Optional, Tuple
from http.cookies import SimpleCookie, CookieError
from fastapi import Request, HTTPException

from src.utils.response_models import error_response
from src.utils.structured_logger import set_user_id

logger = logging.getLogger(__name__)


# ==================== Public Paths ====================

PUBLIC_PATHS = {
    "/",
    "/health",
    "/health/ready",
    "/health/live",
    "/docs",
    "/redoc",
    "/openapi.json",
}

PUBLIC_PREFIXES = [
    "/api/auth/",  # sign-up, sign-in, Google sign-in, sign-out
    "/api/listing/get/",  # listing detail pages are public
    "/docs/",
]


def is_public_path(path: str) -> bool:
    """Check if path is public (no auth required)"""
    if path in PUBLIC_PATHS:
        return True

    for prefix in PUBLIC_PREFIXES:
        if path.startswith(prefix):
            return True

    return False


# ==================== User Context ====================

class UserContext:
    """Authenticated caller, as carried by the session token"""

    def __init__(self, user_id: str):
        self.user_id = str(user_id)

    def owns(self, owner_id: Any) -> bool:
        return owner_id is not None and str(owner_id) == self.user_id

    def __repr__(self) -> str:
        return f"UserContext(user_id='{self.user_id}')"


# ==================== Auth Middleware ====================

class AuthMiddleware:
    """
    Pure ASGI middleware that verifies the session token on protected paths.

    - Missing token: 401 Unauthorized
    - Invalid or expired token: 403 Forbidden
    - Valid token: UserContext attached to request.state.user

    Public paths pass through with request.state.user set to None.
    """

    def __init__(
        self,
        app,
        verify_token: Callable[[str], Tuple[bool, Dict[str, Any]]],
        cookie_name: str = "access_token"
    ):
        self.app = app
        self.verify_token = verify_token
        self.cookie_name = cookie_name

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if "state" not in scope:
            scope["state"] = {}
        scope["state"]["user"] = None

        method = scope.get("method", "")
        path = scope.get("path", "")

        # CORS preflight and public paths skip authentication
        if method == "OPTIONS" or is_public_path(path):
            await self.app(scope, receive, send)
            return

        headers = {}
        for key, value in scope.get("headers", []):
            headers[key.decode("latin-1").lower()] = value.decode("latin-1")

        token = self._extract_token(headers)
        if not token:
            await self._send_json(send, 401, "Unauthorized")
            return

        valid, payload = self.verify_token(token)
        if not valid:
            logger.info(f"Rejected session token on {path}: {payload.get('error')}")
            await self._send_json(send, 403, "Forbidden")
            return

        user = UserContext(user_id=payload["id"])
        set_user_id(user.user_id)
        scope["state"]["user"] = user

        await self.app(scope, receive, send)

    def _extract_token(self, headers: Dict[str, str]) -> Optional[str]:
        """Cookie first, then a Bearer Authorization header."""
        raw_cookie = headers.get("cookie")
        if raw_cookie:
            cookie = SimpleCookie()
            try:
                cookie.load(raw_cookie)
            except CookieError:
                logger.debug("Ignoring malformed Cookie header")
            morsel = cookie.get(self.cookie_name)
            if morsel and morsel.value:
                return morsel.value

        auth_header = headers.get("authorization")
        if auth_header:
            parts = auth_header.split()
            if len(parts) == 2 and parts[0].lower() == "bearer":
                return parts[1]

        return None

    async def _send_json(self, send, status_code: int, message: str):
        """Send an error response directly."""
        body = json.dumps(error_response(status_code, message)).encode()
        await send({
            "type": "http.response.start",
            "status": status_code,
            "headers": [
                (b"content-type", b"application/json"),
                (b"content-length", str(len(body)).encode()),
            ],
        })
        await send({"type": "http.response.body", "body": body})


# ==================== Dependency Functions ====================

def get_current_user(request: Request) -> UserContext:
    """
    FastAPI dependency to get the authenticated caller.

    Usage:
        @router.post("/endpoint")
        async def endpoint(user: UserContext = Depends(get_current_user)):
            ...
    """
    user = getattr(request.state, "user", None)
    if not user:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user
