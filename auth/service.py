"""Authentication service - orchestrates magic link auth flow."""

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from uuid import UUID, uuid4

from auth.config import AuthConfig
from auth.database import AuthDatabase
from auth.exceptions import InvalidLinkError, RateLimitedError
from auth.magic_links import MagicLinkIssuer, MagicLinkValidator, render_magic_link_email
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.session import SessionManager
from auth.types import MagicLinkPayload, Session, User
from clients.email_client import DeliveryError, EmailGatewayClient
from utils.timezone import is_older_than

logger = logging.getLogger(__name__)


@dataclass
class MagicLinkResult:
    """Result of magic link request."""

    sent: bool
    email: str


@dataclass
class LinkValidationResult:
    """Outcome of a valid magic link click.

    user is None when nobody has signed up with the email yet; the session
    stays unauthenticated until complete_signup succeeds.
    """

    email: str
    user: User | None

    @property
    def needs_signup(self) -> bool:
        return self.user is None


class AuthService:
    """Orchestrates magic link authentication flow.

    Handles:
    - Magic link requests (nonce generation, email dispatch)
    - Link validation (expiry, nonce binding, user resolution)
    - First-login signup
    - Logout

    Sessions are passed in by the caller and mutated in place; the caller
    commits them onto the response.
    """

    def __init__(
        self,
        config: AuthConfig,
        auth_db: AuthDatabase,
        session_manager: SessionManager,
        issuer: MagicLinkIssuer,
        validator: MagicLinkValidator,
        rate_limiter: RateLimiter,
        email_client: EmailGatewayClient,
        security_logger: SecurityLogger,
    ):
        self._config = config
        self._auth_db = auth_db
        self._session_manager = session_manager
        self._issuer = issuer
        self._validator = validator
        self._rate_limiter = rate_limiter
        self._email_client = email_client
        self._security_logger = security_logger
        self._link_max_age = timedelta(minutes=config.magic_link_expiry_minutes)

    def request_magic_link(
        self,
        session: Session,
        email: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> MagicLinkResult:
        """Start a login: bind a fresh nonce to session and email the link.

        Any earlier pending nonce is overwritten, so links issued before
        this call stop working for this session.

        Raises:
            RateLimitedError: If the email is over its request limit.
            DeliveryError: If the email could not be sent.
        """
        email = email.strip().lower()

        try:
            self._rate_limiter.check_rate_limit(email)
        except RateLimitedError:
            self._security_logger.log(
                SecurityEvent.RATE_LIMITED,
                email=email,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            raise

        nonce = str(uuid4())
        self._session_manager.set_pending_nonce(session, nonce)
        link = self._issuer.issue(email, nonce)

        self._security_logger.log(
            SecurityEvent.MAGIC_LINK_REQUESTED,
            email=email,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        try:
            self._email_client.send_email(
                from_address=self._config.email_from_address,
                from_name=self._config.email_from_name,
                to_address=email,
                to_name="",
                subject=f"Log in to {self._config.app_name}",
                html=render_magic_link_email(link, self._config.app_name),
            )
        except DeliveryError:
            self._security_logger.log(
                SecurityEvent.MAGIC_LINK_FAILED,
                email=email,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": "delivery_failed"},
            )
            raise

        self._security_logger.log(
            SecurityEvent.MAGIC_LINK_SENT,
            email=email,
            ip_address=ip_address,
        )

        return MagicLinkResult(sent=True, email=email)

    def _check_link(
        self,
        session: Session,
        url: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> MagicLinkPayload:
        """Decode the link and verify it is fresh and bound to session.

        Raises:
            InvalidLinkError: On any failure.
        """
        try:
            payload = self._validator.validate(url)
        except InvalidLinkError as e:
            self._security_logger.log(
                SecurityEvent.MAGIC_LINK_FAILED,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": e.message},
            )
            raise

        if is_older_than(payload.issued_at, self._link_max_age):
            self._security_logger.log(
                SecurityEvent.MAGIC_LINK_EXPIRED,
                email=payload.email,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            raise InvalidLinkError("magic link has expired")

        pending = self._session_manager.get_pending_nonce(session)
        if pending is None or not secrets.compare_digest(
            pending.encode("utf-8"), payload.nonce.encode("utf-8")
        ):
            self._security_logger.log(
                SecurityEvent.MAGIC_LINK_NONCE_MISMATCH,
                email=payload.email,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"has_pending_nonce": pending is not None},
            )
            raise InvalidLinkError("invalid nonce")

        return payload

    def _authenticate(
        self,
        session: Session,
        user: User,
        ip_address: str | None,
        user_agent: str | None,
    ) -> None:
        self._session_manager.set_authenticated(session, user.id)
        self._auth_db.update_last_login(user.id)
        self._rate_limiter.reset_rate_limit(user.email)

        self._security_logger.log(
            SecurityEvent.SESSION_CREATED,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        logger.info(f"User {user.id} logged in")

    def validate_magic_link(
        self,
        session: Session,
        url: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LinkValidationResult:
        """Validate a clicked magic link against session.

        Flow:
        1. Decode payload from url
        2. Reject if issued longer ago than magic_link_expiry_minutes
        3. Reject unless payload nonce equals the session's pending nonce
        4. Resolve user by email; authenticate session if found

        Raises:
            InvalidLinkError: If the link is missing, malformed, expired,
                or was not issued for this session's current login attempt.
        """
        payload = self._check_link(session, url, ip_address, user_agent)

        self._security_logger.log(
            SecurityEvent.MAGIC_LINK_VERIFIED,
            email=payload.email,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        user = self._auth_db.get_user_by_email(payload.email)
        if user is None:
            return LinkValidationResult(email=payload.email, user=None)

        self._authenticate(session, user, ip_address, user_agent)
        return LinkValidationResult(email=user.email, user=user)

    def complete_signup(
        self,
        session: Session,
        url: str,
        first_name: str,
        last_name: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> User:
        """Create the account for a validated first-time email and log it in.

        The link is checked again, so signup needs the same link that was
        clicked. If the account appeared meanwhile it is reused.

        Raises:
            InvalidLinkError: As for validate_magic_link.
        """
        payload = self._check_link(session, url, ip_address, user_agent)

        user = self._auth_db.get_user_by_email(payload.email)
        if user is None:
            user = self._auth_db.create_user(payload.email, first_name.strip(), last_name.strip())
            self._security_logger.log(
                SecurityEvent.USER_CREATED,
                email=user.email,
                user_id=user.id,
                ip_address=ip_address,
                user_agent=user_agent,
            )

        self._authenticate(session, user, ip_address, user_agent)
        return user

    def sign_in_directly(
        self,
        session: Session,
        email: str,
        first_name: str,
        last_name: str,
    ) -> User:
        """Log session in as email without a link, creating the user if needed.

        Only reachable through the test routes.
        """
        email = email.strip().lower()
        user = self._auth_db.get_user_by_email(email)
        if user is None:
            user = self._auth_db.create_user(email, first_name.strip(), last_name.strip())
            self._security_logger.log(SecurityEvent.USER_CREATED, email=email, user_id=user.id)

        self._session_manager.set_authenticated(session, user.id)
        self._security_logger.log(SecurityEvent.SESSION_CREATED, email=email, user_id=user.id)
        return user

    def delete_user(self, email: str) -> bool:
        """Delete the user registered with email. False if there was none."""
        deleted = self._auth_db.delete_user_by_email(email)
        if deleted:
            self._security_logger.log(SecurityEvent.USER_DELETED, email=email.lower())
        return deleted

    def logout(self, session: Session, ip_address: str | None = None) -> None:
        """Clear session. Safe to call on an anonymous session."""
        user_id: UUID | None = self._session_manager.get_authenticated(session)
        self._session_manager.clear(session)

        self._security_logger.log(
            SecurityEvent.SESSION_REVOKED,
            user_id=user_id,
            ip_address=ip_address,
        )

    def get_current_user(self, session: Session) -> User | None:
        """User the session is logged in as, or None."""
        user_id = self._session_manager.get_authenticated(session)
        if user_id is None:
            return None
        return self._auth_db.get_user_by_id(user_id)
