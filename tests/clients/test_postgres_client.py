"""Tests for PostgresClient - pooled connections returning dict rows."""

from unittest.mock import MagicMock, patch
from uuid import UUID

import pytest

from clients.postgres_client import PostgresClient

DATABASE_URL = "postgresql://recipes@localhost/recipes"
TEST_USER_ID = UUID("00000000-0000-0000-0000-000000000001")


@pytest.fixture
def pool(monkeypatch):
    """Patched ThreadedConnectionPool handing out one mock connection."""
    monkeypatch.setattr(PostgresClient, "_connection_pools", {})
    with patch("clients.postgres_client.psycopg2.pool.ThreadedConnectionPool") as pool_cls:
        pool = MagicMock()
        pool.getconn.return_value = MagicMock()
        pool_cls.return_value = pool
        yield pool


@pytest.fixture
def conn(pool):
    return pool.getconn.return_value


@pytest.fixture
def cursor(conn):
    cur = conn.cursor.return_value.__enter__.return_value
    cur.description = [("num",)]
    cur.fetchall.return_value = []
    return cur


@pytest.fixture
def db(pool):
    return PostgresClient(DATABASE_URL)


class TestPostgresClientInit:
    """Connection pool initialization."""

    def test_pool_shared_per_url(self, pool):
        with patch("clients.postgres_client.psycopg2.pool.ThreadedConnectionPool") as pool_cls:
            PostgresClient(DATABASE_URL)
            PostgresClient(DATABASE_URL)

        assert pool_cls.call_count == 1

    def test_close_releases_pool(self, db, pool):
        db.close()

        pool.closeall.assert_called_once()
        assert DATABASE_URL not in PostgresClient._connection_pools


class TestExecuteMethods:
    """Query execution methods."""

    def test_execute_returns_list_of_dicts(self, db, cursor, conn):
        cursor.fetchall.return_value = [{"num": 1, "word": "hello"}]

        assert db.execute("SELECT 1 as num, 'hello' as word") == [{"num": 1, "word": "hello"}]
        conn.commit.assert_called_once()

    def test_execute_without_result_set(self, db, cursor):
        cursor.description = None

        assert db.execute("UPDATE users SET first_name = 'x'") == []
        cursor.fetchall.assert_not_called()

    def test_execute_single_returns_first_row(self, db, cursor):
        cursor.fetchall.return_value = [{"answer": 42}, {"answer": 43}]

        assert db.execute_single("SELECT answer FROM t") == {"answer": 42}

    def test_execute_single_no_rows_returns_none(self, db, cursor):
        assert db.execute_single("SELECT 1 WHERE false") is None

    def test_execute_returning(self, db, cursor):
        cursor.fetchall.return_value = [{"id": 1}]

        assert db.execute_returning("DELETE FROM users RETURNING id") == [{"id": 1}]

    def test_uuid_params_converted(self, db, cursor):
        db.execute("SELECT * FROM users WHERE id = %s", (TEST_USER_ID,))

        cursor.execute.assert_called_once_with(
            "SELECT * FROM users WHERE id = %s", (str(TEST_USER_ID),)
        )

    def test_connection_returned_to_pool(self, db, cursor, pool, conn):
        db.execute("SELECT 1")

        pool.putconn.assert_called_once_with(conn)


class TestErrorHandling:
    """Errors roll back and propagate."""

    def test_error_rolls_back_and_propagates(self, db, cursor, conn, pool):
        cursor.execute.side_effect = RuntimeError("syntax error")

        with pytest.raises(RuntimeError):
            db.execute("SELEC 1")

        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        pool.putconn.assert_called_once_with(conn)

    def test_no_connection_available(self, db, pool):
        pool.getconn.return_value = None

        with pytest.raises(RuntimeError, match="connection"):
            db.execute("SELECT 1")
