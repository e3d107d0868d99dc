"""
Authentication Service - credentials, sessions and account creation

Handles sign-up, password and Google sign-in, and the signed session token
carried in the access_token cookie. Login throttling is applied by the
caller (see src.services.login_throttle) around authenticate().
"""

import logging
import asyncio
from typing import Dict, Any, Tuple
from datetime import datetime, timedelta, timezone
import jwt
from google.auth import exceptions as google_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token as google_id_token

from config.loader import AppConfig
from src.tools.supabase_tool import SupabaseTool, DuplicateRecordError, execute_async, strip_private
from src.services.passwords import (
    hash_password,
    verify_password,
    is_password_complex,
    is_valid_email,
    generate_password,
    generate_username,
    PASSWORD_POLICY_MESSAGE,
    INVALID_EMAIL_MESSAGE,
)

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
INVALID_CREDENTIALS_MESSAGE = "Wrong credentials!"


class AuthService:
    """Service for account authentication and session tokens"""

    def __init__(self, config: AppConfig, db: SupabaseTool):
        """
        Initialize auth service.

        Args:
            config: AppConfig instance (session settings, JWT secret)
            db: SupabaseTool used as the credential store
        """
        self.config = config
        self.db = db

        self.jwt_secret = config.jwt_secret
        if not self.jwt_secret:
            logger.warning(
                "JWT_SECRET not set - falling back to the Supabase service key. "
                "For production, set JWT_SECRET explicitly"
            )
            self.jwt_secret = config.supabase_service_key

    # ==================== Sessions ====================

    def create_session_token(self, user_id: str, expires_in: timedelta) -> str:
        """Mint a signed session token for a user id"""
        now = datetime.now(timezone.utc)
        payload = {
            "id": str(user_id),
            "iat": now,
            "exp": now + expires_in,
        }
        return jwt.encode(payload, self.jwt_secret, algorithm=JWT_ALGORITHM)

    @property
    def password_session_ttl(self) -> timedelta:
        return timedelta(days=self.config.session_days)

    @property
    def oauth_session_ttl(self) -> timedelta:
        return timedelta(hours=self.config.oauth_session_hours)

    def verify_session_token(self, token: str) -> Tuple[bool, Dict[str, Any]]:
        """
        Verify and decode a session token.

        Returns:
            Tuple of (valid, payload/error)
        """
        try:
            payload = jwt.decode(
                token,
                self.jwt_secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["exp"]},
            )

            if not payload.get("id"):
                return False, {"error": "Invalid token: missing user id"}

            return True, payload

        except jwt.ExpiredSignatureError:
            return False, {"error": "Token expired"}
        except jwt.InvalidSignatureError:
            logger.warning("Session token signature verification failed - possible token tampering")
            return False, {"error": "Invalid token signature"}
        except jwt.InvalidTokenError as e:
            logger.info(f"Invalid session token: {e}")
            return False, {"error": "Invalid token"}

    # ==================== Credentials ====================

    async def authenticate(self, email: str, password: str) -> Tuple[bool, Dict[str, Any]]:
        """
        Check email/password against the credential store.

        Unknown email and wrong password produce the same error so callers
        cannot enumerate accounts. Store failures propagate as StoreError.

        Returns:
            Tuple of (success, {"user": ...} or {"error": ...})
        """
        user = await execute_async(lambda: self.db.find_user_by_email(email))
        if not user:
            logger.info("Sign-in failed: unknown account")
            return False, {"error": INVALID_CREDENTIALS_MESSAGE}

        valid = await asyncio.to_thread(verify_password, password, user.get("password"))
        if not valid:
            logger.info(f"Sign-in failed: wrong password for user {user.get('id')}")
            return False, {"error": INVALID_CREDENTIALS_MESSAGE}

        return True, {"user": strip_private(user)}

    async def signup(self, username: str, email: str, password: str) -> Tuple[bool, Dict[str, Any]]:
        """
        Create a password account.

        Returns:
            Tuple of (success, {"user": ...} or {"error": ..., "status": ...})
        """
        if not is_password_complex(password):
            return False, {"error": PASSWORD_POLICY_MESSAGE, "status": 400}

        if not is_valid_email(email):
            return False, {"error": INVALID_EMAIL_MESSAGE, "status": 400}

        password_hash = await asyncio.to_thread(hash_password, password)

        try:
            user = await execute_async(
                lambda: self.db.create_user(username=username, email=email, password_hash=password_hash)
            )
        except DuplicateRecordError:
            return False, {"error": "Username or email already in use", "status": 409}

        return True, {"user": user}

    def verify_google_token(self, credential: str) -> Tuple[bool, Dict[str, Any]]:
        """
        Verify a Google ID token against Google's signing keys.

        Blocking (may fetch certificates); call through asyncio.to_thread.

        Returns:
            Tuple of (valid, claims or {"error": ..., "status": ...})
        """
        client_id = self.config.google_client_id
        if not client_id:
            return False, {"error": "Google sign-in is not configured", "status": 503}

        try:
            claims = google_id_token.verify_oauth2_token(
                credential,
                google_requests.Request(),
                audience=client_id
            )
        except google_exceptions.TransportError as e:
            logger.error(f"Could not fetch Google signing keys: {e}")
            return False, {"error": "Google sign-in is temporarily unavailable", "status": 503}
        except ValueError as e:
            logger.warning(f"Rejected Google ID token: {e}")
            return False, {"error": "Invalid Google credential", "status": 401}

        if not claims.get("email") or not claims.get("email_verified"):
            return False, {"error": "Google account email is not verified", "status": 401}

        return True, claims

    async def google_sign_in(self, credential: str) -> Tuple[bool, Dict[str, Any]]:
        """
        Sign in an account identified by a Google ID token, creating it if needed.

        Email, display name and picture come from the verified token claims.
        New accounts get a random password (never disclosed) and a username
        derived from the display name.
        """
        valid, claims = await asyncio.to_thread(self.verify_google_token, credential)
        if not valid:
            return False, claims

        email = claims["email"].strip().lower()
        name = claims.get("name") or ""
        photo = claims.get("picture")

        if not is_valid_email(email):
            return False, {"error": INVALID_EMAIL_MESSAGE, "status": 400}

        existing = await execute_async(lambda: self.db.find_user_by_email(email))
        if existing:
            return True, {"user": strip_private(existing), "created": False}

        password_hash = await asyncio.to_thread(hash_password, generate_password())
        username = generate_username(name or email.split("@")[0])

        try:
            user = await execute_async(
                lambda: self.db.create_user(
                    username=username,
                    email=email,
                    password_hash=password_hash,
                    avatar=photo
                )
            )
        except DuplicateRecordError:
            return False, {"error": "Username or email already in use", "status": 409}

        logger.info(f"Created account {user.get('id')} from Google sign-in")
        return True, {"user": user, "created": True}
