"""
Per-account login throttle to prevent brute-force attacks.

In-memory tracker keyed by account identifier (normalized email address).
Bans an identifier for ``ban_seconds`` once ``max_failures`` consecutive
failures are recorded. A successful login clears the record.

Expiry is lazy: an expired ban is treated as absent when it is next read,
and is only replaced when the next failure or success touches it.
``purge_expired()`` can be run periodically to drop expired records; without
it the record map grows with every distinct identifier that fails a login.

Thread-safe via threading.Lock.
"""

import logging
import math
import threading
import time
from typing import Callable, Dict, NamedTuple, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_FAILURES = 3
DEFAULT_BAN_SECONDS = 30


class Admission(NamedTuple):
    """Result of an admission check.

    allowed=True means the caller should proceed with credential verification.
    If allowed=False, remaining_seconds is the ban time left, rounded up.
    """
    allowed: bool
    remaining_seconds: int = 0


class _AccountState:
    __slots__ = ("failures", "banned_until")

    def __init__(self):
        self.failures = 0
        self.banned_until = 0.0

    def is_banned(self, now: float) -> bool:
        return self.banned_until > now

    def ban_expired(self, now: float) -> bool:
        return 0.0 < self.banned_until <= now


def normalize_identifier(identifier: str) -> str:
    """Key used for throttle records (case-insensitive email)."""
    return identifier.strip().lower()


class LoginThrottle:
    """Tracks failed logins per identifier and bans after a threshold."""

    def __init__(
        self,
        max_failures: int = DEFAULT_MAX_FAILURES,
        ban_seconds: float = DEFAULT_BAN_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.max_failures = max(1, int(max_failures))
        self.ban_seconds = ban_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._accounts: Dict[str, _AccountState] = {}

    def _now(self, now: Optional[float]) -> float:
        return self._clock() if now is None else now

    def check_admission(self, identifier: str, now: Optional[float] = None) -> Admission:
        """Check whether a login for this identifier may proceed.

        Read-only: an expired ban is reported as allowed but left in place.
        """
        key = normalize_identifier(identifier)
        now = self._now(now)

        with self._lock:
            state = self._accounts.get(key)
            if state is None or not state.is_banned(now):
                return Admission(True, 0)

            return Admission(False, math.ceil(state.banned_until - now))

    def record_failure(self, identifier: str, now: Optional[float] = None) -> None:
        """Record a confirmed bad-credential attempt. May start a ban."""
        key = normalize_identifier(identifier)
        now = self._now(now)

        with self._lock:
            state = self._accounts.get(key)
            if state is None:
                state = _AccountState()
                self._accounts[key] = state
            elif state.ban_expired(now):
                state.failures = 0
                state.banned_until = 0.0
            elif state.is_banned(now):
                # Already banned; the window is not extended
                return

            state.failures += 1
            if state.failures >= self.max_failures:
                state.banned_until = now + self.ban_seconds
                logger.warning(
                    "Login throttle: %s banned for %ss after %d failures",
                    key, self.ban_seconds, state.failures,
                )

    def record_success(self, identifier: str) -> None:
        """Clear any record on successful login."""
        key = normalize_identifier(identifier)

        with self._lock:
            self._accounts.pop(key, None)

    def purge_expired(self, now: Optional[float] = None) -> int:
        """Remove records whose ban has expired. Returns the number purged."""
        now = self._now(now)

        with self._lock:
            expired = [key for key, state in self._accounts.items() if state.ban_expired(now)]
            for key in expired:
                del self._accounts[key]

        if expired:
            logger.debug("Login throttle: purged %d expired records", len(expired))
        return len(expired)

    def reset(self) -> None:
        """Clear all tracked records."""
        with self._lock:
            self._accounts.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._accounts)
