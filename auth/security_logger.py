"""Login audit trail.

Every step of the magic link flow (request, delivery, click, rejection,
signup, logout) is appended to the security_events table. Rows are never
updated. Failures to write propagate to the caller.
"""

from enum import Enum
from typing import Any
from uuid import UUID

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from utils.timezone import now_utc


class SecurityEvent(Enum):
    """Audit event types, stored by value."""

    # Link lifecycle
    MAGIC_LINK_REQUESTED = "magic_link_requested"
    MAGIC_LINK_SENT = "magic_link_sent"
    MAGIC_LINK_VERIFIED = "magic_link_verified"
    MAGIC_LINK_FAILED = "magic_link_failed"
    MAGIC_LINK_EXPIRED = "magic_link_expired"
    MAGIC_LINK_NONCE_MISMATCH = "magic_link_nonce_mismatch"

    # Sessions
    SESSION_CREATED = "session_created"
    SESSION_REVOKED = "session_revoked"

    RATE_LIMITED = "rate_limited"

    # Accounts
    USER_CREATED = "user_created"
    USER_DELETED = "user_deleted"


class SecurityLogger:
    """Appends security_events rows."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def log(
        self,
        event: SecurityEvent,
        email: str | None = None,
        user_id: UUID | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Append one event. details is stored as JSONB when given."""
        row = (
            event.value,
            email,
            str(user_id) if user_id else None,
            ip_address,
            user_agent,
            Json(details) if details else None,
            now_utc(),
        )
        self._db.execute_returning(
            """INSERT INTO security_events
               (event_type, email, user_id, ip_address, user_agent, details, created_at)
               VALUES (%s, %s, %s, %s, %s, %s, %s)
               RETURNING id""",
            row,
        )
