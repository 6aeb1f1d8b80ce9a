"""HTTP routes for authentication.

InvalidLinkError, RateLimitedError and DeliveryError propagate to the
handlers in api.errors. The session cookie is only written on success, so
a failed request leaves the browser's session untouched.
"""

import ipaddress

from fastapi import APIRouter, Query, Request, Response
from starlette.responses import RedirectResponse

from api.base import error_json, success_response, ErrorCodes
from auth.service import AuthService
from auth.session import SessionManager
from auth.types import LoginRequest, Session, SignupRequest, User

APP_HOME = "/app"


def _get_client_ip(request: Request) -> str | None:
    """Extract valid IP address from request, or None if invalid."""
    if not request.client:
        return None
    host = request.client.host
    try:
        ipaddress.ip_address(host)
        return host
    except ValueError:
        return None


def _get_session(request: Request, session_manager: SessionManager) -> Session:
    """Session loaded by AuthMiddleware, or loaded here from the cookie."""
    session = getattr(request.state, "session", None)
    if session is None:
        session = session_manager.load(request.cookies.get(session_manager.cookie_name))
        request.state.session = session
    return session


def _user_json(user: User) -> dict:
    return {
        "id": str(user.id),
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
    }


def create_auth_router(auth_service: AuthService, session_manager: SessionManager) -> APIRouter:
    """Create auth router with injected service."""
    router = APIRouter(tags=["auth"])

    @router.post("/login")
    async def login(request: Request, response: Response, body: LoginRequest):
        """Email a magic link and remember its nonce in the session cookie."""
        session = _get_session(request, session_manager)

        result = auth_service.request_magic_link(
            session,
            email=body.email,
            ip_address=_get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )

        session_manager.commit(response, session)
        return success_response({"sent": result.sent, "email": result.email})

    @router.get("/validate-magic-link")
    async def validate_magic_link(request: Request):
        """Finish login from an emailed link.

        Known users are redirected into the app with an authenticated
        session. First-time emails get needs_signup and must POST their
        name to the same URL.
        """
        session = _get_session(request, session_manager)

        result = auth_service.validate_magic_link(
            session,
            str(request.url),
            ip_address=_get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )

        if result.needs_signup:
            return success_response({"needs_signup": True, "email": result.email})

        redirect = RedirectResponse(APP_HOME, status_code=302)
        session_manager.commit(redirect, session)
        return redirect

    @router.post("/validate-magic-link")
    async def signup(request: Request, body: SignupRequest):
        """Create the account for a first-time email, then log in."""
        session = _get_session(request, session_manager)

        auth_service.complete_signup(
            session,
            str(request.url),
            first_name=body.first_name,
            last_name=body.last_name,
            ip_address=_get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )

        redirect = RedirectResponse(APP_HOME, status_code=302)
        session_manager.commit(redirect, session)
        return redirect

    @router.post("/logout")
    async def logout(request: Request, response: Response):
        """Logout - clear session and cookie."""
        session = _get_session(request, session_manager)
        auth_service.logout(session, ip_address=_get_client_ip(request))

        session_manager.destroy(response)
        return success_response({"message": "Logged out successfully"})

    @router.get("/me")
    async def get_current_user(request: Request):
        """Get current authenticated user."""
        if hasattr(request.state, "user"):
            user = request.state.user
        else:
            user = auth_service.get_current_user(_get_session(request, session_manager))

        if user is None:
            return error_json(401, ErrorCodes.NOT_AUTHENTICATED, "Authentication required")

        return success_response({"user": _user_json(user)})

    return router


def create_test_router(auth_service: AuthService, session_manager: SessionManager) -> APIRouter:
    """Helpers for browser end-to-end suites. Never mount in production."""
    router = APIRouter(tags=["tests"])

    @router.get("/login")
    async def login_as(
        request: Request,
        email: str = Query(None),
        first_name: str = Query("Test"),
        last_name: str = Query("User"),
    ):
        """Log in as email without a magic link, creating the user if needed."""
        if not email:
            return error_json(400, ErrorCodes.INVALID_REQUEST, "Email is required to log in")

        session = _get_session(request, session_manager)
        auth_service.sign_in_directly(session, email, first_name, last_name)

        redirect = RedirectResponse(APP_HOME, status_code=302)
        session_manager.commit(redirect, session)
        return redirect

    @router.get("/delete-user")
    async def delete_user(email: str = Query(None)):
        """Delete the user registered with email."""
        if not email:
            return error_json(400, ErrorCodes.INVALID_REQUEST, "Email is required to delete the user")

        auth_service.delete_user(email)
        return RedirectResponse("/", status_code=302)

    return router
