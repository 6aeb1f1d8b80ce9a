"""Security middleware for FastAPI - session loading and route guards."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse

from auth.service import AuthService
from auth.session import SessionManager


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware that loads the session cookie and guards routes.

    For every request outside PUBLIC_PATHS:
    1. Loads the session from the cookie (invalid cookie = empty session)
    2. Resolves the logged in user, if any
    3. Sets request.state.session and request.state.user

    Protected paths redirect anonymous visitors to the login page.
    Logged-out-only paths redirect logged in users into the app.
    """

    # Served without loading the session or the user
    PUBLIC_PATHS = [
        "/health",
    ]

    PROTECTED_PATHS = [
        "/app",
        "/settings",
    ]

    LOGGED_OUT_ONLY_PATHS = [
        "/login",
        "/validate-magic-link",
    ]

    LOGIN_URL = "/login"
    HOME_URL = "/app"

    def __init__(self, app, session_manager: SessionManager, auth_service: AuthService):
        super().__init__(app)
        self._session_manager = session_manager
        self._auth_service = auth_service

    @staticmethod
    def _matches(path: str, prefixes: list[str]) -> bool:
        """True if path is one of prefixes or nested below one."""
        for prefix in prefixes:
            if path == prefix or path.startswith(prefix + "/"):
                return True
        return False

    async def dispatch(self, request: Request, call_next):
        """Process request through middleware."""
        path = request.url.path
        if self._matches(path, self.PUBLIC_PATHS):
            return await call_next(request)

        session = self._session_manager.load(
            request.cookies.get(self._session_manager.cookie_name)
        )
        user = self._auth_service.get_current_user(session)

        request.state.session = session
        request.state.user = user

        if user is None and self._matches(path, self.PROTECTED_PATHS):
            return RedirectResponse(self.LOGIN_URL, status_code=302)

        if user is not None and self._matches(path, self.LOGGED_OUT_ONLY_PATHS):
            return RedirectResponse(self.HOME_URL, status_code=302)

        return await call_next(request)
