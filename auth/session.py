"""Cookie-backed session state.

The whole session lives in a signed cookie (itsdangerous
URLSafeTimedSerializer); nothing is stored server-side. Callers load the
session once at the request boundary, mutate it through SessionManager, and
must commit it onto the response after every mutation.
"""

import logging
from uuid import UUID

from itsdangerous import BadSignature, URLSafeTimedSerializer
from pydantic import ValidationError
from starlette.responses import Response

from auth.config import AuthConfig
from auth.exceptions import ConfigError
from auth.types import Session

logger = logging.getLogger(__name__)


class SessionManager:
    """Session cookie lifecycle and pending-nonce bookkeeping.

    A tampered, expired or unreadable cookie is treated as a new, empty
    session rather than an error.
    """

    SALT = "recipes-session"

    def __init__(self, config: AuthConfig):
        """
        Raises:
            ConfigError: If config.session_secret is missing.
        """
        if not config.session_secret:
            raise ConfigError("Missing config: session_secret")

        self._config = config
        self._serializer = URLSafeTimedSerializer(config.session_secret, salt=self.SALT)
        self._max_age_seconds = config.session_expiry_hours * 3600

    @property
    def cookie_name(self) -> str:
        return self._config.session_cookie_name

    def load(self, token: str | None) -> Session:
        """Restore a session from its cookie value. Returns an empty session if invalid."""
        if not token:
            return Session()

        try:
            data = self._serializer.loads(token, max_age=self._max_age_seconds)
        except BadSignature:
            # SignatureExpired is a BadSignature too
            logger.info("Discarding session cookie with bad or expired signature")
            return Session()

        if not isinstance(data, dict):
            return Session()

        try:
            return Session(pending_nonce=data.get("nonce"), user_id=data.get("user_id"))
        except ValidationError:
            logger.warning("Discarding signed session cookie with invalid contents")
            return Session()

    def dump(self, session: Session) -> str:
        """Serialize and sign session into a cookie value."""
        data = {}
        if session.pending_nonce is not None:
            data["nonce"] = session.pending_nonce
        if session.user_id is not None:
            data["user_id"] = str(session.user_id)
        return self._serializer.dumps(data)

    def commit(self, response: Response, session: Session) -> None:
        """Write the session cookie onto response."""
        response.set_cookie(
            key=self.cookie_name,
            value=self.dump(session),
            max_age=self._max_age_seconds,
            httponly=True,
            secure=self._config.session_cookie_secure,
            samesite="lax",
        )

    def destroy(self, response: Response) -> None:
        """Instruct the browser to drop the session cookie."""
        response.delete_cookie(
            key=self.cookie_name,
            httponly=True,
            secure=self._config.session_cookie_secure,
            samesite="lax",
        )

    def set_pending_nonce(self, session: Session, nonce: str) -> None:
        """Record the nonce of a freshly issued magic link. Replaces any earlier one."""
        session.pending_nonce = nonce

    def get_pending_nonce(self, session: Session) -> str | None:
        return session.pending_nonce

    def set_authenticated(self, session: Session, user_id: UUID) -> None:
        """Mark session as logged in and consume the pending nonce."""
        session.user_id = user_id
        session.pending_nonce = None

    def get_authenticated(self, session: Session) -> UUID | None:
        return session.user_id

    def clear(self, session: Session) -> None:
        """Forget everything (logout)."""
        session.pending_nonce = None
        session.user_id = None
