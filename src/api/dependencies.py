"""
Shared FastAPI dependencies.

Services are built once per application in main.create_app() and stored on
app.state; handlers receive them through these functions so tests can swap
them with app.dependency_overrides.
"""

from fastapi import Request

from src.services.auth_service import AuthService
from src.services.login_throttle import LoginThrottle
from src.tools.supabase_tool import SupabaseTool


def get_db(request: Request) -> SupabaseTool:
    return request.app.state.db


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_login_throttle(request: Request) -> LoginThrottle:
    return request.app.state.login_throttle
