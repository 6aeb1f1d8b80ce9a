"""Authentication configuration."""

import os

from pydantic import BaseModel, Field

from auth.exceptions import ConfigError


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    All durations are in their natural units (minutes for short durations,
    hours for longer ones) to make configuration intuitive.

    Secrets and the public origin default to None so the model can be built
    piecemeal; components that need them raise ConfigError on construction.
    """

    # Magic link settings
    magic_link_expiry_minutes: int = Field(
        default=15,
        description="How long an issued magic link is accepted",
        ge=5,
        le=60,
    )
    magic_link_secret: str | None = Field(
        default=None,
        description="Server secret used to encrypt magic link payloads",
        repr=False,
    )
    origin: str | None = Field(
        default=None,
        description="Public origin magic links point at, e.g. https://recipes.example.com",
    )

    # Session settings
    session_secret: str | None = Field(
        default=None,
        description="Server secret used to sign the session cookie",
        repr=False,
    )
    session_expiry_hours: int = Field(
        default=720,  # 30 days
        description="Session cookie lifetime in hours",
        ge=1,
        le=2160,
    )
    session_cookie_name: str = Field(default="session", min_length=1)
    session_cookie_secure: bool = Field(
        default=True,
        description="Send the session cookie over HTTPS only",
    )

    # Rate limiting
    rate_limit_attempts: int = Field(
        default=5,
        description="Max magic link requests per email per window",
        ge=1,
        le=20,
    )
    rate_limit_window_minutes: int = Field(
        default=15,
        description="Rate limit window duration",
        ge=5,
        le=60,
    )

    # Email
    app_name: str = Field(
        default="Remix Recipes",
        description="Application name for emails",
    )
    email_from_address: str = Field(default="noreply@localhost")
    email_from_name: str = Field(default="Remix Recipes")

    # Exposes /__tests/* helpers used by browser end-to-end suites
    enable_test_routes: bool = False


def load_auth_config(secrets: dict[str, str], **overrides) -> AuthConfig:
    """Build AuthConfig from Vault secrets and the process environment.

    Args:
        secrets: Dict with keys magic_link_secret, session_secret
            (see clients.vault_client.get_auth_secrets)
        **overrides: Extra AuthConfig fields

    Raises:
        ConfigError: If the secrets or the ORIGIN env var are missing.
    """
    for field in ("magic_link_secret", "session_secret"):
        if not secrets.get(field):
            raise ConfigError(f"Missing secret: {field}")

    origin = overrides.pop("origin", None) or os.getenv("ORIGIN")
    if not origin:
        raise ConfigError("Missing env: ORIGIN")

    if "enable_test_routes" not in overrides:
        overrides["enable_test_routes"] = os.getenv("ENABLE_TEST_ROUTES") == "true"

    return AuthConfig(
        magic_link_secret=secrets["magic_link_secret"],
        session_secret=secrets["session_secret"],
        origin=origin,
        **overrides,
    )
