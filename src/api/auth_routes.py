"""
Authentication API Routes

Endpoints for sign-up, password and Google sign-in, and sign-out.
Sessions are carried in an httpOnly cookie holding a signed token.
"""

import logging
from datetime import timedelta
from fastapi import APIRouter, HTTPException, Depends, Response
from pydantic import BaseModel, Field

from src.api.dependencies import get_auth_service, get_login_throttle
from src.services.auth_service import AuthService
from src.services.login_throttle import LoginThrottle
from src.tools.supabase_tool import StoreError
from src.utils.error_handler import log_and_raise
from src.utils.response_models import message_response

logger = logging.getLogger(__name__)

auth_router = APIRouter(prefix="/api/auth", tags=["Authentication"])


# ==================== Pydantic Models ====================

# Email format is checked by the credential policy so the error message
# matches the rest of the API; these models only bound the input sizes.

class SignupRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    email: str = Field(..., max_length=254)
    password: str = Field(..., max_length=128)


class SigninRequest(BaseModel):
    email: str = Field(..., min_length=1, max_length=254)
    password: str = Field(..., max_length=128)


class GoogleSigninRequest(BaseModel):
    """Google ID token (the credential returned by Google Identity Services)."""
    id_token: str = Field(..., min_length=1, max_length=4096)


def ban_message(remaining_seconds: int) -> str:
    return f"User is temporarily banned. Try again in {remaining_seconds} seconds."


def set_session_cookie(
    response: Response,
    auth_service: AuthService,
    user_id: str,
    ttl: timedelta
) -> None:
    token = auth_service.create_session_token(user_id, ttl)
    response.set_cookie(
        key=auth_service.config.cookie_name,
        value=token,
        max_age=int(ttl.total_seconds()),
        httponly=True,
        secure=auth_service.config.cookie_secure,
        samesite="lax",
    )


# ==================== Auth Endpoints ====================

@auth_router.post("/signup", status_code=201)
async def signup(
    signup_data: SignupRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Create a password account.

    The password must have 8+ characters with upper and lower case letters,
    a digit and a symbol.
    """
    try:
        success, result = await auth_service.signup(
            username=signup_data.username.strip(),
            email=signup_data.email.strip(),
            password=signup_data.password
        )
    except StoreError as e:
        log_and_raise(500, "creating account", e, logger)

    if not success:
        raise HTTPException(status_code=result.get("status", 400), detail=result["error"])

    return message_response("User created successfully!")


@auth_router.post("/signin")
async def signin(
    signin_data: SigninRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
    throttle: LoginThrottle = Depends(get_login_throttle)
):
    """
    Authenticate with email and password.

    Banned identifiers are rejected with 403 before any credential lookup.
    Unknown email and wrong password both return 401 and count towards a
    ban; store failures return 500 and do not.
    """
    email = signin_data.email.strip()

    admission = throttle.check_admission(email)
    if not admission.allowed:
        raise HTTPException(status_code=403, detail=ban_message(admission.remaining_seconds))

    try:
        success, result = await auth_service.authenticate(email, signin_data.password)
    except StoreError as e:
        log_and_raise(500, "signing in", e, logger)

    if not success:
        throttle.record_failure(email)
        raise HTTPException(status_code=401, detail=result["error"])

    throttle.record_success(email)

    user = result["user"]
    set_session_cookie(response, auth_service, user["id"], auth_service.password_session_ttl)
    logger.info(f"User {user['id']} signed in")
    return user


@auth_router.post("/google")
async def google(
    google_data: GoogleSigninRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Sign in with a verified Google ID token, creating the account on first use.

    The account is identified only by the token's verified email claim.
    """
    try:
        success, result = await auth_service.google_sign_in(google_data.id_token)
    except StoreError as e:
        log_and_raise(500, "signing in with Google", e, logger)

    if not success:
        raise HTTPException(status_code=result.get("status", 400), detail=result["error"])

    user = result["user"]
    set_session_cookie(response, auth_service, user["id"], auth_service.oauth_session_ttl)
    return user


@auth_router.get("/signout")
async def signout(
    response: Response,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Clear the session cookie."""
    response.delete_cookie(auth_service.config.cookie_name)
    return message_response("User has been logged out!")
