"""Application exceptions and the handlers that render them.

Every error leaves the API in the same envelope:

    {"error": {"code": "ERROR_CODE", "message": "...", "details": {...}}}

Business rejections (guard failures, conflicts, not-found) are expected
outcomes of scanning on the floor and are logged as warnings.  Anything
else is an infrastructure fault: logged with its traceback and answered
with a generic 500.
"""

import logging
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class MehustajaException(Exception):
    """Base exception for application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        details: Union[dict, list, None] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class ValidationFailedError(MehustajaException):
    """Request is missing required data; rejected before any database I/O."""

    def __init__(self, message: str = "Invalid request data"):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="INVALID_REQUEST",
        )


class ResourceNotFoundError(MehustajaException):
    """Exception for resources not found."""

    def __init__(self, resource: str, identifier: str, message: str | None = None):
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            message=message or f"{resource} not found: {identifier}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="RESOURCE_NOT_FOUND",
        )


class GuardFailedError(MehustajaException):
    """A status precondition recomputed from the data is not met yet.

    Not a fault: the operator has to scan or fill more crates first.
    """

    def __init__(self, message: str, error_code: str = "CRATES_INCOMPLETE", details=None):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=error_code,
            details=details,
        )


class ConflictError(MehustajaException):
    """The request clashes with the current state of a pallet, shelf or crate."""

    def __init__(self, message: str, error_code: str = "CONFLICT", details=None):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code=error_code,
            details=details,
        )


class InvalidTransitionError(ConflictError):
    """Order status cannot move along the requested edge."""

    def __init__(self, order_id: str, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(
            message=f"Order {order_id} is '{current}', cannot move to '{target}'",
            error_code="INVALID_TRANSITION",
            details={"order_id": order_id, "status": current, "target": target},
        )


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Union[dict, list, None] = None,
) -> JSONResponse:
    content = {
        "error": {
            "code": error_code,
            "message": message,
        }
    }

    if details:
        content["error"]["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=content,
    )


async def mehustaja_exception_handler(
    request: Request,
    exc: MehustajaException,
) -> JSONResponse:
    logger.warning(
        "Rejected %s %s: %s - %s",
        request.method,
        request.url.path,
        exc.error_code,
        exc.message,
        extra={
            "error_code": exc.error_code,
            "path": request.url.path,
            "method": request.method,
        },
    )

    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details,
    )


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "HTTP %s: %s",
            exc.status_code,
            exc.detail,
            extra={
                "path": request.url.path,
                "method": request.method,
            },
        )

    return create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code=f"HTTP_{exc.status_code}",
    )


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    logger.warning(
        "Validation error on %s",
        request.url.path,
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Validation error",
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


# A second mapping of one crate.  PostgreSQL reports the constraint name,
# SQLite the table and column.
_CRATE_MAPPING_MARKERS = ("uq_pallet_crate_mappings_crate_id", "pallet_crate_mappings.crate_id")


def _classify_integrity_error(error_msg: str) -> tuple[int, str, str]:
    lowered = error_msg.lower()
    if any(marker in lowered for marker in _CRATE_MAPPING_MARKERS):
        return status.HTTP_409_CONFLICT, "CRATE_ALREADY_PALLETIZED", "Crate is already on a pallet"
    if "unique" in lowered or "duplicate key" in lowered:
        return status.HTTP_409_CONFLICT, "DUPLICATE_RECORD", "A record with this value already exists"
    if "foreign key" in lowered:
        return status.HTTP_422_UNPROCESSABLE_ENTITY, "FOREIGN_KEY_VIOLATION", "Referenced record does not exist"
    if "not null" in lowered:
        return status.HTTP_422_UNPROCESSABLE_ENTITY, "NULL_VALUE_NOT_ALLOWED", "Required field is missing"
    return status.HTTP_422_UNPROCESSABLE_ENTITY, "INTEGRITY_ERROR", "Database constraint violation"


async def database_exception_handler(
    request: Request,
    exc: IntegrityError,
) -> JSONResponse:
    """Constraint violations that slipped past the service checks.

    Two scanners mapping the same crate at once both pass the "already
    placed" check; the unique crate_id constraint stops the second one,
    which is answered like any other crate-on-another-pallet rejection.
    """
    error_msg = str(exc.orig) if exc.orig is not None else str(exc)
    status_code, error_code, message = _classify_integrity_error(error_msg)

    log = logger.warning if status_code == status.HTTP_409_CONFLICT else logger.error
    log(
        "Integrity error on %s %s: %s (%s)",
        request.method,
        request.url.path,
        error_code,
        error_msg,
    )

    return create_error_response(
        status_code=status_code,
        message=message,
        error_code=error_code,
    )


async def operational_exception_handler(
    request: Request,
    exc: OperationalError,
) -> JSONResponse:
    """Lost connection or lock timeout.  The scan was not recorded and can be retried."""
    logger.error("Database unavailable during %s %s: %s", request.method, request.url.path, exc)

    return create_error_response(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        message="Database temporarily unavailable. Scan again in a moment.",
        error_code="DATABASE_UNAVAILABLE",
    )


async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    logger.error("Unhandled error during %s %s", request.method, request.url.path, exc_info=exc)

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        error_code="INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    """Register all custom exception handlers with FastAPI app."""
    app.add_exception_handler(MehustajaException, mehustaja_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, database_exception_handler)
    app.add_exception_handler(OperationalError, operational_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
