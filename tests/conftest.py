"""
Test Configuration and Fixtures

Central configuration for pytest including:
- Environment for the config loader
- Supabase query-builder mocks
- Application and TestClient setup with injected services
- Session helpers
- Google ID token verification stand-ins

Usage:
    All fixtures defined here are automatically available to all tests.
"""

import os
import sys
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

# Ensure project root is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

TEST_ENV = {
    'SUPABASE_URL': '',
    'SUPABASE_SERVICE_KEY': 'test-service-key',
    'JWT_SECRET': 'test-jwt-secret-key-with-enough-length-0123456789',
    'LOG_JSON': 'false',
    'LOG_LEVEL': 'INFO',
    'ACCESS_LOG_FILE': '',
    'GOOGLE_CLIENT_ID': 'test-client.apps.googleusercontent.com',
}

# Set before main.py is imported anywhere
os.environ.update(TEST_ENV)


# ==================== Configuration Fixtures ====================

@pytest.fixture
def test_config():
    """Real AppConfig loaded from config/marketplace.yaml with test env."""
    from config.loader import AppConfig
    return AppConfig()


@pytest.fixture
def mock_config():
    """Create a mock AppConfig for unit tests."""
    config = MagicMock()
    config.supabase_url = "https://test.supabase.co"
    config.supabase_service_key = "test-service-key"
    config.jwt_secret = TEST_ENV['JWT_SECRET']
    config.cookie_name = "access_token"
    config.cookie_secure = False
    config.google_client_id = TEST_ENV['GOOGLE_CLIENT_ID']
    config.session_days = 90
    config.oauth_session_hours = 1
    config.throttle_max_failures = 3
    config.throttle_ban_seconds = 30
    config.throttle_sweep_interval = 0
    return config


# ==================== Database Fixtures ====================

def create_chainable_mock():
    """Create a mock that supports method chaining for Supabase queries."""
    mock = MagicMock()
    for method in ['select', 'insert', 'update', 'delete', 'upsert',
                   'eq', 'neq', 'ilike', 'order', 'limit', 'range', 'single']:
        getattr(mock, method).return_value = mock
    return mock


def supabase_result(data):
    """Mock of a postgrest APIResponse."""
    result = MagicMock()
    result.data = data
    return result


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client whose tables share one chainable query mock."""
    client = MagicMock()
    query = create_chainable_mock()
    query.execute.return_value = supabase_result([])
    client.table.return_value = query
    return client


@pytest.fixture
def mock_db():
    """A SupabaseTool stand-in for route tests."""
    db = MagicMock()
    db.find_user_by_email.return_value = None
    db.get_user.return_value = None
    db.get_listing.return_value = None
    db.get_user_listings.return_value = []
    return db


# ==================== User Fixtures ====================

@pytest.fixture
def sample_user():
    """Public view of a stored user."""
    return {
        'id': 'user_123',
        'username': 'seller',
        'email': 'seller@example.com',
        'avatar': 'https://example.com/avatar.png',
    }


@pytest.fixture
def sample_listing():
    return {
        'id': 'listing_1',
        'name': 'Oak dining table',
        'description': 'Solid oak, seats six',
        'address': '12 Market Street',
        'type': 'sale',
        'quantity': 1,
        'stock': 1,
        'regular_price': 250.0,
        'discount_price': 0,
        'offer': False,
        'furniture': True,
        'brandnew': False,
        'image_urls': ['https://cdn.example.com/table.jpg'],
        'user_ref': 'user_123',
    }


# ==================== App Fixtures ====================

class FakeClock:
    """Controllable time source for the login throttle."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def throttle(clock):
    from src.services.login_throttle import LoginThrottle
    return LoginThrottle(max_failures=3, ban_seconds=30, clock=clock)


@pytest.fixture
def app(test_config, mock_db, throttle):
    """Application with mocked store and controllable throttle."""
    from main import create_app
    return create_app(config=test_config, db=mock_db, throttle=throttle, configure_logging=False)


@pytest.fixture
def test_client(app):
    from fastapi.testclient import TestClient
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def session_cookie(app, sample_user):
    """Cookie dict carrying a valid session for sample_user."""
    token = app.state.auth_service.create_session_token(sample_user['id'], timedelta(hours=1))
    return {app.state.config.cookie_name: token}


@pytest.fixture
def auth_client(test_client, session_cookie):
    """TestClient with the sample user's session cookie set."""
    test_client.cookies.update(session_cookie)
    return test_client


# ==================== Cleanup Fixtures ====================

@pytest.fixture(autouse=True)
def reset_caches():
    """Reset config and client caches between tests."""
    yield
    from config.loader import clear_config_cache
    clear_config_cache()

    from src.tools import supabase_tool
    supabase_tool._supabase_client_cache.clear()


# ==================== Pytest Configuration ====================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")


# ==================== Google Sign-in ====================

def make_google_claims(email='jane@example.com', **overrides):
    """Claims as returned by google.oauth2.id_token.verify_oauth2_token."""
    claims = {
        'iss': 'https://accounts.google.com',
        'aud': TEST_ENV['GOOGLE_CLIENT_ID'],
        'sub': '1234567890',
        'email': email,
        'email_verified': True,
        'name': 'Jane Doe',
        'picture': 'https://lh3.googleusercontent.com/a/photo',
    }
    claims.update(overrides)
    return claims


@pytest.fixture
def google_claims():
    """Factory for verified Google ID token claims."""
    return make_google_claims


@pytest.fixture
def mock_google_verify():
    """Patch Google ID token verification; set return_value/side_effect per test."""
    with patch('src.services.auth_service.google_id_token.verify_oauth2_token') as verify:
        verify.return_value = make_google_claims()
        yield verify
