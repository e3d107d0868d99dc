"""
Configuration Loader - Loads and validates application configuration

Usage:
    from config.loader import get_config

    config = get_config()
    print(config.supabase_url)
    print(config.throttle_max_failures)

Configuration lives in config/marketplace.yaml. String values may reference
environment variables as ${VAR_NAME} or ${VAR_NAME:-default}; the resolved
document is validated against config/schema.json before use.
"""

import yaml
import json
import os
import re
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional
from jsonschema import validate, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "marketplace.yaml"


class AppConfig:
    """Load and validate the marketplace configuration from YAML"""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize application configuration

        Args:
            config_path: Path to a YAML config file (defaults to
                MARKETPLACE_CONFIG env var, then config/marketplace.yaml)
        """
        base_dir = Path(__file__).parent
        config_path = config_path or os.getenv("MARKETPLACE_CONFIG")

        self.config_path = Path(config_path) if config_path else base_dir / DEFAULT_CONFIG_FILE
        self.schema_path = base_dir / "schema.json"

        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        self.config = self._load_config()
        self._validate_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load YAML configuration file"""
        with open(self.config_path, 'r') as f:
            config = yaml.safe_load(f) or {}

        return self._substitute_env_vars(config)

    def _substitute_env_vars(self, obj: Any) -> Any:
        """
        Recursively substitute environment variables in config

        Supports: ${VAR_NAME} or ${VAR_NAME:-default_value}
        """
        if isinstance(obj, dict):
            return {k: self._substitute_env_vars(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [self._substitute_env_vars(item) for item in obj]
        elif isinstance(obj, str):
            pattern = r'\$\{([A-Z_]+)(?::-([^}]*))?\}'

            def replacer(match):
                var_name = match.group(1)
                default = match.group(2)
                return os.getenv(var_name, default or '')

            return re.sub(pattern, replacer, obj)
        else:
            return obj

    def _validate_config(self):
        """Validate configuration against JSON schema"""
        if not self.schema_path.exists():
            logger.warning(f"Schema file not found: {self.schema_path}, skipping validation")
            return

        with open(self.schema_path, 'r') as f:
            schema = json.load(f)

        try:
            validate(instance=self.config, schema=schema)
        except ValidationError as e:
            raise ValueError(f"Configuration validation failed: {e.message}")

    @staticmethod
    def _as_int(value: Any, default: int) -> int:
        # Env-substituted values arrive as strings
        if value in (None, ''):
            return default
        return int(value)

    @staticmethod
    def _as_bool(value: Any, default: bool) -> bool:
        if value in (None, ''):
            return default
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("1", "true", "yes", "on")

    # ==================== App Properties ====================

    @property
    def app_name(self) -> str:
        return self.config.get('app', {}).get('name', 'Marketplace API')

    @property
    def environment(self) -> str:
        return self.config.get('app', {}).get('environment') or 'development'

    @property
    def cors_origins(self) -> List[str]:
        """Allowed CORS origins (comma separated string or list)"""
        origins = self.config.get('app', {}).get('cors_origins', [])
        if isinstance(origins, str):
            origins = origins.split(",")
        return [o.strip() for o in origins if o and o.strip()]

    # ==================== Database Properties ====================

    @property
    def supabase_url(self) -> str:
        return self.config['database']['supabase_url']

    @property
    def supabase_service_key(self) -> str:
        return self.config['database']['supabase_service_key']

    # ==================== Session Properties ====================

    @property
    def jwt_secret(self) -> str:
        return self.config['session']['jwt_secret']

    @property
    def cookie_name(self) -> str:
        return self.config['session'].get('cookie_name', 'access_token')

    @property
    def session_days(self) -> int:
        """Lifetime of a password sign-in session"""
        return self._as_int(self.config['session'].get('password_session_days'), 90)

    @property
    def oauth_session_hours(self) -> int:
        """Lifetime of a Google sign-in session"""
        return self._as_int(self.config['session'].get('oauth_session_hours'), 1)

    @property
    def cookie_secure(self) -> bool:
        return self._as_bool(self.config['session'].get('cookie_secure'), False)

    @property
    def google_client_id(self) -> Optional[str]:
        """Audience required on Google ID tokens (unset disables Google sign-in)"""
        return self.config['session'].get('google_client_id') or None

    # ==================== Throttle Properties ====================

    @property
    def throttle_max_failures(self) -> int:
        return self._as_int(self.config.get('throttle', {}).get('max_failures'), 3)

    @property
    def throttle_ban_seconds(self) -> int:
        return self._as_int(self.config.get('throttle', {}).get('ban_seconds'), 30)

    @property
    def throttle_sweep_interval(self) -> int:
        """Seconds between expired-record sweeps (0 disables the sweep)"""
        return self._as_int(self.config.get('throttle', {}).get('sweep_interval_seconds'), 0)

    # ==================== Logging Properties ====================

    @property
    def log_level(self) -> str:
        return (self.config.get('logging', {}).get('level') or 'INFO').upper()

    @property
    def log_json(self) -> bool:
        return self._as_bool(self.config.get('logging', {}).get('json'), True)

    @property
    def access_log_file(self) -> Optional[str]:
        return self.config.get('logging', {}).get('access_log_file') or None

    def to_dict(self) -> Dict[str, Any]:
        """Return the resolved configuration with secrets masked"""
        masked = json.loads(json.dumps(self.config))
        if masked.get('database', {}).get('supabase_service_key'):
            masked['database']['supabase_service_key'] = '***'
        if masked.get('session', {}).get('jwt_secret'):
            masked['session']['jwt_secret'] = '***'
        return masked

    def __repr__(self) -> str:
        return f"AppConfig(path='{self.config_path}', environment='{self.environment}')"


# Singleton pattern for easy access
_config_cache: Dict[str, AppConfig] = {}


def clear_config_cache():
    """Clear the config cache (forces a reload on next get_config())."""
    _config_cache.clear()


def get_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Get or create application configuration (cached)

    Args:
        config_path: Optional path to a YAML config file

    Returns:
        AppConfig instance
    """
    key = config_path or os.getenv("MARKETPLACE_CONFIG") or DEFAULT_CONFIG_FILE
    if key not in _config_cache:
        _config_cache[key] = AppConfig(config_path)
    return _config_cache[key]
