# storefront/core/errors.py
"""
Error taxonomy and the single boundary that turns failures into JSON.

Every failure leaves the API as the same envelope:

    {"success": false, "message": "<human readable text>"}

Services raise the `ApiError` subclasses below; FastAPI / Starlette
errors and persistence failures are translated here as well.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("storefront.errors")

# Friendlier messages for required body fields that are missing
MISSING_FIELD_MESSAGES: dict[str, str] = {
    "productId": "Product ID is required",
}


class ApiError(Exception):
    """Base class for failures that map onto an HTTP status."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidRequest(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class Unauthenticated(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "User not authenticated"


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Conflict(ApiError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class Internal(ApiError):
    """
    Unexpected failure. The boundary answers with this status and message
    for anything it does not recognise, without exposing details.
    """


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message},
    )


def _describe_validation_error(exc: RequestValidationError) -> InvalidRequest:
    """
    Build an InvalidRequest from the first validation error, e.g.
    "Product ID is required" or "quantity: Input should be ...".
    """
    errors = exc.errors()
    if not errors:
        return InvalidRequest()
    first = errors[0]
    # loc looks like ("body", "productId"); drop the location kind
    loc = [str(part) for part in first.get("loc", ()) if part != "body"]
    if first.get("type") == "missing" and loc and loc[-1] in MISSING_FIELD_MESSAGES:
        return InvalidRequest(MISSING_FIELD_MESSAGES[loc[-1]])
    msg = first.get("msg", "Invalid value")
    if loc:
        return InvalidRequest(f"{'.'.join(loc)}: {msg}")
    return InvalidRequest(msg)


async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return error_response(exc.status_code, exc.message)


async def _http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return error_response(exc.status_code, message)


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return await _api_error_handler(request, _describe_validation_error(exc))


async def _persistence_error_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    logger.exception(
        "Persistence failure on %s %s", request.method, request.url.path
    )
    return await _api_error_handler(request, Internal())


async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error on %s %s", request.method, request.url.path
    )
    return await _api_error_handler(request, Internal())


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the JSON envelope handlers to the application."""
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, _persistence_error_handler)
    # Exception handlers run in ServerErrorMiddleware, which re-raises
    # after sending the response.
    app.add_exception_handler(Exception, _unexpected_error_handler)
