"""
Password hashing and credential policy.

bcrypt hashes (cost 10) are stored in users.password; complexity and email
format rules are enforced on sign-up and on account updates.
"""

import re
import secrets
import string
from typing import Optional

import bcrypt

BCRYPT_ROUNDS = 10
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_BYTES = 72  # bcrypt input limit

# digit, lowercase, uppercase and a symbol (underscore counts as a symbol)
PASSWORD_REGEX = re.compile(r"^(?=.*\d)(?=.*[a-z])(?=.*[A-Z])(?=.*[\W_]).{8,}$")
EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

PASSWORD_POLICY_MESSAGE = (
    "Password must contain at least 8 characters, including uppercase, "
    "lowercase, a digit and a symbol."
)
INVALID_EMAIL_MESSAGE = "Invalid email format"


def is_password_complex(password: Optional[str]) -> bool:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        return False
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return False
    return PASSWORD_REGEX.fullmatch(password) is not None


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and EMAIL_REGEX.fullmatch(email) is not None


def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Compare a plaintext password against a stored bcrypt hash."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash or a password over bcrypt's 72 byte limit
        return False


def generate_password(length: int = 16) -> str:
    """Random password for accounts created through Google sign-in."""
    alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_username(display_name: str) -> str:
    """Derive a username from a display name plus a random suffix."""
    base = "".join(display_name.split()).lower() or "user"
    suffix = "".join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(4))
    return f"{base}{suffix}"
