"""Database operations for authentication.

Uses the users table. Emails are stored lowercased and are unique.
"""

from uuid import UUID

from clients.postgres_client import PostgresClient
from auth.types import User
from utils.timezone import now_utc

_USER_COLUMNS = "id, email, first_name, last_name, created_at, last_login_at"


def _row_to_user(row: dict) -> User:
    return User(
        id=UUID(row["id"]) if isinstance(row["id"], str) else row["id"],
        email=row["email"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        created_at=row["created_at"],
        last_login_at=row["last_login_at"],
    )


class AuthDatabase:
    """User store for the login flow."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def get_user_by_email(self, email: str) -> User | None:
        """Find user by email (case-insensitive)."""
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE email = lower(%s)",
            (email,),
        )
        if row is None:
            return None
        return _row_to_user(row)

    def get_user_by_id(self, user_id: UUID) -> User | None:
        """Find user by ID."""
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s",
            (str(user_id),),
        )
        if row is None:
            return None
        return _row_to_user(row)

    def create_user(self, email: str, first_name: str, last_name: str) -> User:
        """Create new user with email (lowercased)."""
        rows = self._db.execute_returning(
            f"""INSERT INTO users (email, first_name, last_name)
                VALUES (lower(%s), %s, %s)
                RETURNING {_USER_COLUMNS}""",
            (email, first_name, last_name),
        )
        return _row_to_user(rows[0])

    def update_last_login(self, user_id: UUID) -> None:
        """Update last_login_at to current time."""
        self._db.execute_returning(
            "UPDATE users SET last_login_at = %s WHERE id = %s RETURNING id",
            (now_utc(), str(user_id)),
        )

    def delete_user_by_email(self, email: str) -> bool:
        """Permanently delete user and all associated data (FK cascade).

        Returns:
            True if user was found and deleted, False if not found.
        """
        rows = self._db.execute_returning(
            "DELETE FROM users WHERE email = lower(%s) RETURNING id",
            (email,),
        )
        return len(rows) > 0
