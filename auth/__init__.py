"""Magic link authentication."""

from auth.exceptions import (
    AuthError,
    ConfigError,
    DecodeError,
    InvalidLinkError,
    RateLimitedError,
)
from auth.types import (
    User,
    Session,
    MagicLinkPayload,
    LoginRequest,
    SignupRequest,
)
from auth.config import AuthConfig, load_auth_config
from auth.magic_links import MagicLinkCodec, MagicLinkIssuer, MagicLinkValidator
from auth.database import AuthDatabase
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.session import SessionManager
from auth.service import AuthService, MagicLinkResult, LinkValidationResult
from auth.security_middleware import AuthMiddleware
from auth.api import create_auth_router, create_test_router
