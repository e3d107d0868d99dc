"""
Listing API Routes

Create, read, update and delete marketplace listings. Reading a single
listing is public; every change requires the owner's session.
"""

import logging
from enum import Enum
from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel, Field, model_validator
from typing import Optional, List

from src.api.dependencies import get_db
from src.middleware.auth_middleware import get_current_user, UserContext
from src.tools.supabase_tool import SupabaseTool, StoreError, execute_async
from src.utils.error_handler import log_and_raise
from src.utils.response_models import message_response

logger = logging.getLogger(__name__)

listing_router = APIRouter(prefix="/api/listing", tags=["Listings"])

MAX_IMAGES = 6
LISTING_NOT_FOUND = "Listing not found!"


class ListingType(str, Enum):
    RENT = "rent"
    SALE = "sale"


class ListingCreate(BaseModel):
    """New listing. Images are uploaded elsewhere; only their URLs are stored."""
    name: str = Field(..., min_length=1, max_length=62)
    description: str = Field(..., min_length=1, max_length=2000)
    address: str = Field(..., min_length=1, max_length=300)
    type: ListingType = ListingType.RENT
    quantity: int = Field(default=1, ge=1)
    stock: int = Field(default=0, ge=0)
    regular_price: float = Field(..., gt=0)
    discount_price: float = Field(default=0, ge=0)
    offer: bool = False
    furniture: bool = False
    brandnew: bool = False
    image_urls: List[str] = Field(..., min_length=1, max_length=MAX_IMAGES)

    @model_validator(mode="after")
    def check_discount(self):
        if self.offer and self.discount_price >= self.regular_price:
            raise ValueError("Discount price must be lower than regular price")
        return self


class ListingUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=62)
    description: Optional[str] = Field(default=None, min_length=1, max_length=2000)
    address: Optional[str] = Field(default=None, min_length=1, max_length=300)
    type: Optional[ListingType] = None
    quantity: Optional[int] = Field(default=None, ge=1)
    stock: Optional[int] = Field(default=None, ge=0)
    regular_price: Optional[float] = Field(default=None, gt=0)
    discount_price: Optional[float] = Field(default=None, ge=0)
    offer: Optional[bool] = None
    furniture: Optional[bool] = None
    brandnew: Optional[bool] = None
    image_urls: Optional[List[str]] = Field(default=None, min_length=1, max_length=MAX_IMAGES)


async def load_owned_listing(db: SupabaseTool, listing_id: str, user: UserContext, action: str) -> dict:
    """Fetch a listing, enforcing that the caller owns it."""
    try:
        listing = await execute_async(lambda: db.get_listing(listing_id))
    except StoreError as e:
        log_and_raise(500, "getting listing", e, logger)

    if not listing:
        raise HTTPException(status_code=404, detail=LISTING_NOT_FOUND)

    if not user.owns(listing.get("user_ref")):
        raise HTTPException(status_code=401, detail=f"You can only {action} your own listings!")

    return listing


@listing_router.post("/create", status_code=201)
async def create_listing(
    listing: ListingCreate,
    user: UserContext = Depends(get_current_user),
    db: SupabaseTool = Depends(get_db)
):
    """Create a listing owned by the caller."""
    data = listing.model_dump(mode="json")

    try:
        created = await execute_async(lambda: db.create_listing(data, owner_id=user.user_id))
    except StoreError as e:
        log_and_raise(500, "creating listing", e, logger)

    logger.info(f"Listing {created.get('id')} created by {user.user_id}")
    return created


@listing_router.delete("/delete/{listing_id}")
async def delete_listing(
    listing_id: str,
    user: UserContext = Depends(get_current_user),
    db: SupabaseTool = Depends(get_db)
):
    await load_owned_listing(db, listing_id, user, "delete")

    try:
        await execute_async(lambda: db.delete_listing(listing_id))
    except StoreError as e:
        log_and_raise(500, "deleting listing", e, logger)

    return message_response("Listing has been deleted!")


@listing_router.post("/update/{listing_id}")
async def update_listing(
    listing_id: str,
    update_data: ListingUpdate,
    user: UserContext = Depends(get_current_user),
    db: SupabaseTool = Depends(get_db)
):
    current = await load_owned_listing(db, listing_id, user, "update")

    updates = update_data.model_dump(mode="json", exclude_none=True)

    # Validate the discount against the merged result
    offer = updates.get("offer", current.get("offer", False))
    regular = updates.get("regular_price", current.get("regular_price"))
    discount = updates.get("discount_price", current.get("discount_price", 0))
    if offer and regular is not None and discount is not None and discount >= regular:
        raise HTTPException(status_code=400, detail="Discount price must be lower than regular price")

    try:
        updated = await execute_async(lambda: db.update_listing(listing_id, updates))
    except StoreError as e:
        log_and_raise(500, "updating listing", e, logger)

    if not updated:
        raise HTTPException(status_code=404, detail=LISTING_NOT_FOUND)

    return updated


@listing_router.get("/get/{listing_id}")
async def get_listing(
    listing_id: str,
    db: SupabaseTool = Depends(get_db)
):
    """Public listing detail."""
    try:
        listing = await execute_async(lambda: db.get_listing(listing_id))
    except StoreError as e:
        log_and_raise(500, "getting listing", e, logger)

    if not listing:
        raise HTTPException(status_code=404, detail=LISTING_NOT_FOUND)

    return listing
