"""
API Routes - Marketplace

All API routers, grouped by domain:
- Authentication (/api/auth)
- Users (/api/user)
- Listings (/api/listing)
"""

from src.api.auth_routes import auth_router
from src.api.users_routes import users_router
from src.api.listing_routes import listing_router


def include_routers(app):
    """Include all routers in the FastAPI app"""
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(listing_router)
