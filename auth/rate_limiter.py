"""Rate limiting for magic link requests.

Counters live in Valkey. Every attempt pushes the expiry forward, so a
client that keeps hammering stays locked out.
"""

from clients.valkey_client import ValkeyClient
from auth.config import AuthConfig
from auth.exceptions import RateLimitedError


class RateLimiter:
    """Per-email throttle for login emails."""

    KEY_PREFIX = "ratelimit:magic_link:"

    def __init__(self, valkey: ValkeyClient, config: AuthConfig):
        self._valkey = valkey
        self._limit = config.rate_limit_attempts
        self._window_seconds = config.rate_limit_window_minutes * 60

    def _key(self, email: str) -> str:
        return f"{self.KEY_PREFIX}{email.lower()}"

    def check_rate_limit(self, email: str) -> None:
        """Count an attempt for email.

        Raises:
            RateLimitedError: If email is over its limit for the window.
        """
        key = self._key(email)
        count = self._valkey.incr(key)
        self._valkey.expire(key, self._window_seconds)

        if count > self._limit:
            raise RateLimitedError(retry_after_seconds=max(self._valkey.ttl(key), 1))

    def reset_rate_limit(self, email: str) -> None:
        """Forget attempts after a successful login."""
        self._valkey.delete(self._key(email))
