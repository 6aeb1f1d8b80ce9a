"""Tests for SessionManager - signed cookie sessions and nonce bookkeeping."""

from uuid import uuid4

import pytest
from itsdangerous import URLSafeTimedSerializer
from starlette.responses import Response

from auth.config import AuthConfig
from auth.exceptions import ConfigError
from auth.session import SessionManager
from auth.types import Session


class TestConstruction:
    """Session secret is required at startup."""

    def test_missing_secret_raises_config_error(self):
        with pytest.raises(ConfigError, match="session_secret"):
            SessionManager(AuthConfig())


class TestLoad:
    """Restoring sessions from cookie values."""

    def test_no_cookie_gives_empty_session(self, session_manager):
        session = session_manager.load(None)

        assert session.pending_nonce is None
        assert session.user_id is None

    def test_round_trip(self, session_manager):
        user_id = uuid4()
        original = Session(pending_nonce="n1", user_id=user_id)

        restored = session_manager.load(session_manager.dump(original))

        assert restored == original

    def test_unsigned_value_gives_empty_session(self, session_manager):
        assert session_manager.load("not-a-signed-value") == Session()

    def test_tampered_value_gives_empty_session(self, session_manager):
        token = session_manager.dump(Session(pending_nonce="n1"))
        assert session_manager.load("x" + token) == Session()

    def test_other_secret_gives_empty_session(self, session_manager, config):
        other = SessionManager(config.model_copy(update={"session_secret": "other-secret"}))
        token = other.dump(Session(user_id=uuid4()))

        assert session_manager.load(token) == Session()

    def test_expired_cookie_gives_empty_session(self, config):
        manager = SessionManager(config.model_copy(update={"session_expiry_hours": 1}))
        token = manager.dump(Session(user_id=uuid4()))
        manager._max_age_seconds = -1

        assert manager.load(token) == Session()

    def test_signed_but_invalid_contents_gives_empty_session(self, session_manager, config):
        serializer = URLSafeTimedSerializer(config.session_secret, salt=SessionManager.SALT)
        token = serializer.dumps({"user_id": "not-a-uuid"})

        assert session_manager.load(token) == Session()

    def test_signed_non_dict_gives_empty_session(self, session_manager, config):
        serializer = URLSafeTimedSerializer(config.session_secret, salt=SessionManager.SALT)

        assert session_manager.load(serializer.dumps(["nonce"])) == Session()


class TestNonceAndUser:
    """Pending nonce and authenticated user accessors."""

    def test_set_and_get_pending_nonce(self, session_manager):
        session = Session()
        session_manager.set_pending_nonce(session, "n1")

        assert session_manager.get_pending_nonce(session) == "n1"

    def test_new_nonce_replaces_old(self, session_manager):
        session = Session()
        session_manager.set_pending_nonce(session, "n1")
        session_manager.set_pending_nonce(session, "n2")

        assert session_manager.get_pending_nonce(session) == "n2"

    def test_set_authenticated_consumes_nonce(self, session_manager):
        user_id = uuid4()
        session = Session(pending_nonce="n1")

        session_manager.set_authenticated(session, user_id)

        assert session_manager.get_authenticated(session) == user_id
        assert session_manager.get_pending_nonce(session) is None

    def test_clear(self, session_manager):
        session = Session(pending_nonce="n1", user_id=uuid4())

        session_manager.clear(session)

        assert session == Session()

    def test_cookie_omits_unset_fields(self, session_manager, config):
        serializer = URLSafeTimedSerializer(config.session_secret, salt=SessionManager.SALT)
        token = session_manager.dump(Session(pending_nonce="n1"))

        assert serializer.loads(token) == {"nonce": "n1"}


class TestCookieHeaders:
    """commit/destroy write the Set-Cookie header."""

    def test_commit_sets_cookie(self, session_manager):
        response = Response()
        session_manager.commit(response, Session(pending_nonce="n1"))

        header = response.headers["set-cookie"]
        assert header.startswith("session=")
        assert "HttpOnly" in header
        assert "SameSite=lax" in header
        assert "Max-Age=" in header

    def test_secure_flag_follows_config(self, config):
        manager = SessionManager(config.model_copy(update={"session_cookie_secure": True}))
        response = Response()
        manager.commit(response, Session())

        assert "Secure" in response.headers["set-cookie"]

    def test_destroy_expires_cookie(self, session_manager):
        response = Response()
        session_manager.destroy(response)

        header = response.headers["set-cookie"]
        assert header.startswith("session=")
        assert "Max-Age=0" in header
