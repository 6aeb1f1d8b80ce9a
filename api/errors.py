"""Global exception handlers for FastAPI.

Anything a route does not handle itself still ends up as a JSON error
envelope with a readable message.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from api.base import error_json, ErrorCodes
from auth.exceptions import InvalidLinkError, RateLimitedError
from clients.email_client import DeliveryError

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(InvalidLinkError)
    async def invalid_link_handler(request: Request, exc: InvalidLinkError):
        return error_json(400, ErrorCodes.INVALID_LINK, f"Invalid magic link: {exc.message}")

    @app.exception_handler(RateLimitedError)
    async def rate_limited_handler(request: Request, exc: RateLimitedError):
        return error_json(
            429,
            ErrorCodes.RATE_LIMITED,
            f"Too many requests. Please wait {exc.retry_after_seconds} seconds.",
            headers={"Retry-After": str(exc.retry_after_seconds)},
        )

    @app.exception_handler(DeliveryError)
    async def delivery_error_handler(request: Request, exc: DeliveryError):
        logger.error(f"Email delivery failed: {exc}")
        return error_json(
            502,
            ErrorCodes.EMAIL_DELIVERY_FAILED,
            "We couldn't send your login email. Please try again.",
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        message = "; ".join(error["msg"] for error in exc.errors()) or "Invalid request"
        return error_json(422, ErrorCodes.VALIDATION_ERROR, message)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return error_json(500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
