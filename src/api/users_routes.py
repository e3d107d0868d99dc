"""
User Management API Routes

Endpoints for reading, updating and deleting accounts. Callers may only
change, delete or list the listings of their own account.
"""

import asyncio
import logging
from fastapi import APIRouter, HTTPException, Depends, Response
from pydantic import BaseModel, Field
from typing import Optional

from src.api.dependencies import get_db, get_auth_service
from src.middleware.auth_middleware import get_current_user, UserContext
from src.services.auth_service import AuthService
from src.services.passwords import (
    hash_password,
    is_password_complex,
    is_valid_email,
    PASSWORD_POLICY_MESSAGE,
    INVALID_EMAIL_MESSAGE,
)
from src.tools.supabase_tool import SupabaseTool, StoreError, DuplicateRecordError, execute_async
from src.utils.error_handler import log_and_raise
from src.utils.response_models import message_response

logger = logging.getLogger(__name__)

users_router = APIRouter(prefix="/api/user", tags=["User Management"])


class UpdateUserRequest(BaseModel):
    username: Optional[str] = Field(default=None, min_length=1, max_length=64)
    email: Optional[str] = Field(default=None, max_length=254)
    password: Optional[str] = Field(default=None, max_length=128)
    avatar: Optional[str] = None


def require_owner(user: UserContext, user_id: str, action: str) -> None:
    if not user.owns(user_id):
        raise HTTPException(status_code=401, detail=f"You can only {action}!")


@users_router.post("/update/{user_id}")
async def update_user(
    user_id: str,
    update_data: UpdateUserRequest,
    user: UserContext = Depends(get_current_user),
    db: SupabaseTool = Depends(get_db)
):
    """Update the caller's own username, email, password or avatar."""
    require_owner(user, user_id, "update your own account")

    updates = update_data.model_dump(exclude_none=True)

    if "email" in updates:
        updates["email"] = updates["email"].strip().lower()
        if not is_valid_email(updates["email"]):
            raise HTTPException(status_code=400, detail=INVALID_EMAIL_MESSAGE)

    if "password" in updates:
        if not is_password_complex(updates["password"]):
            raise HTTPException(status_code=400, detail=PASSWORD_POLICY_MESSAGE)
        updates["password"] = await asyncio.to_thread(hash_password, updates["password"])

    try:
        updated = await execute_async(lambda: db.update_user(user_id, updates))
    except DuplicateRecordError:
        raise HTTPException(status_code=409, detail="Username or email already in use")
    except StoreError as e:
        log_and_raise(500, "updating user", e, logger)

    if not updated:
        raise HTTPException(status_code=404, detail="User not found!")

    return updated


@users_router.delete("/delete/{user_id}")
async def delete_user(
    user_id: str,
    response: Response,
    user: UserContext = Depends(get_current_user),
    db: SupabaseTool = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Delete the caller's own account and its listings."""
    require_owner(user, user_id, "delete your own account")

    try:
        deleted = await execute_async(lambda: db.delete_user(user_id))
    except StoreError as e:
        log_and_raise(500, "deleting user", e, logger)

    if not deleted:
        raise HTTPException(status_code=404, detail="User not found!")

    response.delete_cookie(auth_service.config.cookie_name)
    logger.info(f"User {user_id} deleted their account")
    return message_response("User has been deleted!")


@users_router.get("/listings/{user_id}")
async def get_user_listings(
    user_id: str,
    user: UserContext = Depends(get_current_user),
    db: SupabaseTool = Depends(get_db)
):
    """Listings owned by the caller."""
    require_owner(user, user_id, "view your own listings")

    try:
        return await execute_async(lambda: db.get_user_listings(user_id))
    except StoreError as e:
        log_and_raise(500, "listing user listings", e, logger)


@users_router.get("/{user_id}")
async def get_user(
    user_id: str,
    user: UserContext = Depends(get_current_user),
    db: SupabaseTool = Depends(get_db)
):
    """Public profile of any account (no credentials)."""
    try:
        found = await execute_async(lambda: db.get_user(user_id))
    except StoreError as e:
        log_and_raise(500, "getting user", e, logger)

    if not found:
        raise HTTPException(status_code=404, detail="User not found!")

    return found
