"""Shared test fixtures for the Recipes auth test suite.

Infrastructure is replaced with in-memory fakes (users, Valkey counters)
and Mock(spec=...) objects (email gateway, security log), so the suite runs
without Postgres, Valkey or Vault.
"""

import re
import html
from pathlib import Path
from unittest.mock import Mock
from uuid import UUID, uuid4

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from auth.config import AuthConfig
from auth.magic_links import MagicLinkCodec, MagicLinkIssuer, MagicLinkValidator
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger
from auth.service import AuthService
from auth.session import SessionManager
from auth.types import User
from clients.email_client import EmailGatewayClient
from utils.timezone import now_utc


# =============================================================================
# TEST CONSTANTS
# =============================================================================

TEST_ORIGIN = "https://recipes.test"
TEST_MAGIC_LINK_SECRET = "test-magic-link-secret"
TEST_SESSION_SECRET = "test-session-secret"

TEST_USER_ID = UUID("00000000-0000-0000-0000-000000000001")
TEST_USER_EMAIL = "a@example.com"


# =============================================================================
# FAKES
# =============================================================================


class FakeAuthDatabase:
    """In-memory stand-in for AuthDatabase with the same public methods."""

    def __init__(self):
        self.users: dict[UUID, User] = {}

    def add_user(self, email: str, first_name: str = "Test", last_name: str = "User", user_id: UUID | None = None) -> User:
        user = User(
            id=user_id or uuid4(),
            email=email.lower(),
            first_name=first_name,
            last_name=last_name,
            created_at=now_utc(),
        )
        self.users[user.id] = user
        return user

    def get_user_by_email(self, email: str) -> User | None:
        for user in self.users.values():
            if user.email == email.lower():
                return user
        return None

    def get_user_by_id(self, user_id: UUID) -> User | None:
        return self.users.get(user_id)

    def create_user(self, email: str, first_name: str, last_name: str) -> User:
        return self.add_user(email, first_name, last_name)

    def update_last_login(self, user_id: UUID) -> None:
        user = self.users[user_id]
        self.users[user_id] = user.model_copy(update={"last_login_at": now_utc()})

    def delete_user_by_email(self, email: str) -> bool:
        user = self.get_user_by_email(email)
        if user is None:
            return False
        del self.users[user.id]
        return True


class FakeValkey:
    """In-memory stand-in for ValkeyClient covering counter operations."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def incr(self, key: str) -> int:
        value = int(self.values.get(key, "0")) + 1
        self.values[key] = str(value)
        return value

    def expire(self, key: str, seconds: int) -> bool:
        if key not in self.values:
            return False
        self.ttls[key] = seconds
        return True

    def ttl(self, key: str) -> int:
        if key not in self.values:
            return -2
        return self.ttls.get(key, -1)

    def delete(self, key: str) -> bool:
        self.ttls.pop(key, None)
        return self.values.pop(key, None) is not None


def _extract_link(email_client: Mock) -> str:
    body = email_client.send_email.call_args.kwargs["html"]
    match = re.search(r'href="([^"]+)"', body)
    assert match, "email body has no link"
    return html.unescape(match.group(1))


# =============================================================================
# CONFIG AND COMPONENT FIXTURES
# =============================================================================


@pytest.fixture
def config() -> AuthConfig:
    """Fully configured AuthConfig. Cookies not Secure so TestClient (http) sends them."""
    return AuthConfig(
        magic_link_secret=TEST_MAGIC_LINK_SECRET,
        session_secret=TEST_SESSION_SECRET,
        origin=TEST_ORIGIN,
        magic_link_expiry_minutes=15,
        rate_limit_attempts=3,
        rate_limit_window_minutes=5,
        session_cookie_secure=False,
        email_from_address="login@recipes.test",
        email_from_name="Recipes",
    )


@pytest.fixture
def codec(config) -> MagicLinkCodec:
    return MagicLinkCodec(config.magic_link_secret)


@pytest.fixture
def issuer(codec, config) -> MagicLinkIssuer:
    return MagicLinkIssuer(codec, config.origin)


@pytest.fixture
def validator(codec) -> MagicLinkValidator:
    return MagicLinkValidator(codec)


@pytest.fixture
def session_manager(config) -> SessionManager:
    return SessionManager(config)


@pytest.fixture
def auth_db() -> FakeAuthDatabase:
    return FakeAuthDatabase()


@pytest.fixture
def test_user(auth_db) -> User:
    """The primary test user, already registered."""
    return auth_db.add_user(TEST_USER_EMAIL, "Ada", "Lovelace", user_id=TEST_USER_ID)


@pytest.fixture
def valkey() -> FakeValkey:
    return FakeValkey()


@pytest.fixture
def rate_limiter(valkey, config) -> RateLimiter:
    return RateLimiter(valkey, config)


@pytest.fixture
def mock_email_client():
    """Mock email client - no actual emails sent in tests."""
    mock = Mock(spec=EmailGatewayClient)
    mock.send_email.return_value = None
    return mock


@pytest.fixture
def mock_security_logger():
    return Mock(spec=SecurityLogger)


@pytest.fixture
def auth_service(
    config,
    auth_db,
    session_manager,
    issuer,
    validator,
    rate_limiter,
    mock_email_client,
    mock_security_logger,
) -> AuthService:
    """AuthService over in-memory users and counters, mocked email and audit log."""
    return AuthService(
        config=config,
        auth_db=auth_db,
        session_manager=session_manager,
        issuer=issuer,
        validator=validator,
        rate_limiter=rate_limiter,
        email_client=mock_email_client,
        security_logger=mock_security_logger,
    )


@pytest.fixture
def emailed_link(mock_email_client):
    """Callable returning the magic link from the most recent email sent."""
    return lambda: _extract_link(mock_email_client)
