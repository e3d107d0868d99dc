"""
Supabase Tool - Marketplace data access

Handles persisted marketplace data in Supabase (PostgreSQL):
- Users (credential lookup, profile updates, deletion)
- Listings (create, read, update, delete, per-owner listing)

Usage:
    from config.loader import get_config
    from src.tools.supabase_tool import SupabaseTool

    sb = SupabaseTool(get_config())
    user = sb.find_user_by_email("a@example.com")

All methods are synchronous; call them from async handlers through
execute_async() so the event loop is not blocked.
"""

import logging
import asyncio
from typing import Dict, Any, List, Optional, Callable, TypeVar
from datetime import datetime, timezone

from supabase import create_client, Client

from config.database import SupabaseTables, PRIVATE_USER_COLUMNS, LISTING_MUTABLE_COLUMNS
from config.loader import AppConfig

T = TypeVar('T')

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


async def execute_async(operation: Callable[[], T]) -> T:
    """
    Execute a synchronous Supabase operation in a thread pool.
    Usage: user = await execute_async(lambda: db.find_user_by_email(email))
    """
    return await asyncio.to_thread(operation)


class StoreError(Exception):
    """Raised when the backing store cannot complete an operation."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class DuplicateRecordError(StoreError):
    """Raised when an insert/update violates a unique constraint."""


# ==================== Client Cache ====================
# Cache Supabase clients to avoid reinitializing on every request
_supabase_client_cache: Dict[str, Client] = {}


def get_cached_supabase_client(supabase_url: str, supabase_key: str) -> Optional[Client]:
    """Get or create a cached Supabase client"""
    if not supabase_url or not supabase_key:
        return None

    key_suffix = supabase_key[-10:]
    cache_key = f"{supabase_url}:{key_suffix}"

    if cache_key not in _supabase_client_cache:
        try:
            _supabase_client_cache[cache_key] = create_client(supabase_url, supabase_key)
            logger.info(f"Supabase client created and cached for {supabase_url}")
        except Exception as e:
            logger.error(f"Failed to create Supabase client: {e}")
            return None

    return _supabase_client_cache.get(cache_key)


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def strip_private(user: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Drop credential columns from a user row before it leaves the API."""
    if user is None:
        return None
    return {k: v for k, v in user.items() if k not in PRIVATE_USER_COLUMNS}


class SupabaseTool:
    """Supabase operations for users and listings"""

    TABLE_USERS = SupabaseTables.USERS
    TABLE_LISTINGS = SupabaseTables.LISTINGS

    def __init__(self, config: AppConfig):
        """
        Initialize Supabase tool with application configuration

        Args:
            config: AppConfig instance
        """
        self.config = config

        # Use cached client to avoid reinitializing on every request
        self.client = get_cached_supabase_client(
            config.supabase_url,
            config.supabase_service_key
        )

        if not self.client:
            logger.warning("Supabase not configured - store operations will fail")

    def _run(self, operation: str, query: Callable[[Client], Any]) -> Any:
        """Execute a query, translating client failures into StoreError."""
        if not self.client:
            raise StoreError("Database not configured")

        try:
            return query(self.client).execute()
        except Exception as e:
            code = getattr(e, "code", None)
            logger.error(f"Supabase error while {operation}: {e}")
            if code == UNIQUE_VIOLATION:
                raise DuplicateRecordError(f"Duplicate record while {operation}", code) from e
            raise StoreError(f"Store failure while {operation}", code) from e

    @staticmethod
    def _first(result) -> Optional[Dict[str, Any]]:
        data = getattr(result, "data", None)
        if isinstance(data, list):
            return data[0] if data else None
        return data or None

    # ==================== Health ====================

    def ping(self) -> bool:
        """Cheap round-trip used by the readiness probe"""
        self._run("checking connectivity",
                  lambda c: c.table(self.TABLE_USERS).select("id").limit(1))
        return True

    # ==================== User Operations ====================

    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """
        Credential lookup by email. Emails are stored lowercased.

        Returns:
            Full user row including the password hash, or None
        """
        result = self._run(
            "looking up user by email",
            lambda c: c.table(self.TABLE_USERS).select("*").eq("email", email.strip().lower()).limit(1)
        )
        return self._first(result)

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Get a user by id (password hash excluded)"""
        result = self._run(
            "getting user",
            lambda c: c.table(self.TABLE_USERS).select("*").eq("id", user_id).limit(1)
        )
        return strip_private(self._first(result))

    def create_user(
        self,
        username: str,
        email: str,
        password_hash: str,
        avatar: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Insert a new user.

        Raises:
            DuplicateRecordError: username or email already taken
        """
        record = {
            "username": username,
            "email": email.strip().lower(),
            "password": password_hash,
            "created_at": _utcnow(),
            "updated_at": _utcnow(),
        }
        if avatar:
            record["avatar"] = avatar

        result = self._run(
            "creating user",
            lambda c: c.table(self.TABLE_USERS).insert(record)
        )
        created = self._first(result)
        if not created:
            raise StoreError("Store returned no row for new user")

        logger.info(f"Created user {created.get('id')}")
        return strip_private(created)

    def update_user(self, user_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Update user fields. None values are ignored.

        Returns:
            Updated user (password hash excluded) or None if not found
        """
        changes = {k: v for k, v in updates.items() if v is not None}
        if not changes:
            return self.get_user(user_id)

        changes["updated_at"] = _utcnow()
        result = self._run(
            "updating user",
            lambda c: c.table(self.TABLE_USERS).update(changes).eq("id", user_id)
        )
        return strip_private(self._first(result))

    def delete_user(self, user_id: str) -> bool:
        """Delete a user and their listings"""
        self._run(
            "deleting user listings",
            lambda c: c.table(self.TABLE_LISTINGS).delete().eq("user_ref", user_id)
        )
        result = self._run(
            "deleting user",
            lambda c: c.table(self.TABLE_USERS).delete().eq("id", user_id)
        )
        return bool(getattr(result, "data", None))

    # ==================== Listing Operations ====================

    def create_listing(self, listing: Dict[str, Any], owner_id: str) -> Dict[str, Any]:
        """Insert a listing owned by owner_id"""
        record = {k: v for k, v in listing.items() if k in LISTING_MUTABLE_COLUMNS}
        record["user_ref"] = owner_id
        record["created_at"] = _utcnow()
        record["updated_at"] = _utcnow()

        result = self._run(
            "creating listing",
            lambda c: c.table(self.TABLE_LISTINGS).insert(record)
        )
        created = self._first(result)
        if not created:
            raise StoreError("Store returned no row for new listing")
        return created

    def get_listing(self, listing_id: str) -> Optional[Dict[str, Any]]:
        result = self._run(
            "getting listing",
            lambda c: c.table(self.TABLE_LISTINGS).select("*").eq("id", listing_id).limit(1)
        )
        return self._first(result)

    def update_listing(self, listing_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Apply a partial update; ownership is not changed"""
        changes = {k: v for k, v in updates.items() if k in LISTING_MUTABLE_COLUMNS}
        if not changes:
            return self.get_listing(listing_id)

        changes["updated_at"] = _utcnow()
        result = self._run(
            "updating listing",
            lambda c: c.table(self.TABLE_LISTINGS).update(changes).eq("id", listing_id)
        )
        return self._first(result)

    def delete_listing(self, listing_id: str) -> bool:
        result = self._run(
            "deleting listing",
            lambda c: c.table(self.TABLE_LISTINGS).delete().eq("id", listing_id)
        )
        return bool(getattr(result, "data", None))

    def get_user_listings(self, user_id: str) -> List[Dict[str, Any]]:
        """All listings owned by a user, newest first"""
        result = self._run(
            "listing user listings",
            lambda c: c.table(self.TABLE_LISTINGS).select("*").eq("user_ref", user_id)
            .order("created_at", desc=True)
        )
        return getattr(result, "data", None) or []
