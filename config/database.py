"""
Database Table Name Abstraction

Provides centralized table and column name management for Supabase.
All table references should go through this module.

Usage:
    from config.database import SupabaseTables

    client.table(SupabaseTables.LISTINGS).select("*").eq("id", listing_id)
"""


class SupabaseTables:
    """Supabase table name constants"""

    USERS = "users"
    LISTINGS = "listings"


# Columns never returned to API consumers
PRIVATE_USER_COLUMNS = ("password",)

# Columns a listing owner may change through the API
LISTING_MUTABLE_COLUMNS = (
    "name",
    "description",
    "address",
    "type",
    "quantity",
    "stock",
    "regular_price",
    "discount_price",
    "offer",
    "furniture",
    "brandnew",
    "image_urls",
)
