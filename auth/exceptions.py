"""Typed exceptions for auth failures."""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""


class ConfigError(AuthError):
    """
    Required startup configuration is missing.

    Raised while wiring the application, never per request. The process
    should refuse to serve traffic.
    """


class DecodeError(AuthError):
    """Magic link payload could not be decrypted or parsed."""


class InvalidLinkError(AuthError):
    """
    Magic link is missing, malformed, expired, or bound to another login.

    The message is shown to the user as-is.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class RateLimitedError(AuthError):
    """Too many attempts. Client should wait before retrying."""

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Rate limited. Retry after {retry_after_seconds} seconds.")
