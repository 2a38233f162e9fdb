import logging
import traceback
from contextlib import contextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


# --- EXCEPTION TAXONOMY ---
class PlatformError(Exception):
    """Base class for every error the API knows how to turn into a response."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message=None):
        super().__init__(message or self.message)
        self.message = message or self.message


class ValidationError(PlatformError):
    status_code = 400
    message = "Missing required fields"


class AuthorizationError(PlatformError):
    status_code = 403
    message = "Unauthorized"


class UpstreamFetchError(PlatformError):
    message = "Upstream content fetch failed"


# Fetchers raise this name
FetchError = UpstreamFetchError


class StorageError(PlatformError):
    message = "Storage operation failed"


class OperationFailed(PlatformError):
    """A route-level failure carrying the generic message shown to clients."""


class StartupError(PlatformError):
    """Fatal: the process must not serve traffic."""

    message = "Startup failed"


@contextmanager
def failure_message(message):
    """Re-raise storage and upstream failures as a generic client-facing error.

    The original error is logged here and stays chained as ``__cause__`` so the
    non-production handler can still show it.
    """
    try:
        yield
    except (StorageError, UpstreamFetchError) as exc:
        logger.error("%s: %s", message, exc, exc_info=exc)
        raise OperationFailed(message) from exc


# --- HANDLERS ---
def register_exception_handlers(app: FastAPI, production: bool):
    def _body(message, extra=None):
        body = {"error": message}
        if not production and extra:
            body.update(extra)
        return body

    @app.exception_handler(PlatformError)
    async def platform_error_handler(request: Request, exc: PlatformError):
        extra = {}
        if exc.__cause__ is not None:
            extra["detail"] = str(exc.__cause__)
        return JSONResponse(status_code=exc.status_code, content=_body(exc.message, extra))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        details = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=_body(ValidationError.message, {"details": details}),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        extra = {
            "detail": str(exc),
            "trace": traceback.format_exception(type(exc), exc, exc.__traceback__),
        }
        return JSONResponse(status_code=500, content=_body("Internal server error", extra))
