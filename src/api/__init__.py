"""API Routes Module"""
from .routes import include_routers, auth_router, users_router, listing_router

__all__ = ['include_routers', 'auth_router', 'users_router', 'listing_router']
