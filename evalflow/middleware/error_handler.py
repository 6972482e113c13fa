"""Workflow error taxonomy and global exception handlers."""

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

logger = structlog.get_logger()


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(
        self,
        message: str,
        code: str = "API_ERROR",
        status_code: int = 400,
        details: dict = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class InvalidInputError(APIError):
    """Malformed identifier or missing required field."""

    def __init__(self, message: str = "Invalid input", field: str = None):
        super().__init__(
            message=message,
            code="INVALID_INPUT",
            status_code=400,
            details={"field": field} if field else {},
        )


class NotFoundError(APIError):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str | int):
        super().__init__(
            message=f"{resource} not found",
            code="NOT_FOUND",
            status_code=404,
            details={"resource": resource, "id": identifier},
        )


class VersionConflictError(APIError):
    """Optimistic concurrency check failed; reload and retry."""

    def __init__(self, evaluation_id: str, expected_version: int = None):
        details = {"id": evaluation_id}
        if expected_version is not None:
            details["expectedVersion"] = expected_version
        super().__init__(
            message="The evaluation changed. Reload it and try again.",
            code="VERSION_CONFLICT",
            status_code=409,
            details=details,
        )


class MissingAssignmentDataError(APIError):
    """A slot lacks its interviewer, case folder or fit question."""

    def __init__(self, slot_id: str, missing: list[str]):
        super().__init__(
            message="Every interview needs an interviewer email, a case and a fit question",
            code="MISSING_ASSIGNMENT_DATA",
            status_code=422,
            details={"slotId": slot_id, "missing": missing},
        )


class InvalidAssignmentDataError(APIError):
    """A slot references a malformed interviewer, case or question."""

    def __init__(self, slot_id: str, field: str):
        super().__init__(
            message=f"Interview {slot_id} has an invalid {field}",
            code="INVALID_ASSIGNMENT_DATA",
            status_code=422,
            details={"slotId": slot_id, "field": field},
        )


class InvalidAssignmentResourcesError(APIError):
    """A referenced case folder or fit question does not exist."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            message=f"{resource} referenced by an interview does not exist",
            code="INVALID_ASSIGNMENT_RESOURCES",
            status_code=422,
            details={"resource": resource, "id": identifier},
        )


class InvalidPortalUrlError(APIError):
    """No usable absolute URL is configured for invitation links."""

    def __init__(self, reason: str):
        super().__init__(
            message="Interviewer portal URL is not configured correctly",
            code="INVALID_PORTAL_URL",
            status_code=500,
            details={"reason": reason},
        )


class MailerUnavailableError(APIError):
    """Mail transport not configured or unreachable."""

    def __init__(self, reason: str = None):
        super().__init__(
            message="Email delivery is unavailable",
            code="MAILER_UNAVAILABLE",
            status_code=503,
            details={"reason": reason} if reason else {},
        )


class AccessDeniedError(APIError):
    """Caller is not the interviewer assigned to the slot."""

    def __init__(self, message: str = "You are not allowed to access this evaluation"):
        super().__init__(
            message=message,
            code="ACCESS_DENIED",
            status_code=403,
        )


class FormAlreadySubmittedError(APIError):
    """The slot's form is already final."""

    def __init__(self, slot_id: str):
        super().__init__(
            message="This form has already been submitted",
            code="FORM_ALREADY_SUBMITTED",
            status_code=409,
            details={"slotId": slot_id},
        )


class FormsPendingError(APIError):
    """The round cannot advance until every form is submitted."""

    def __init__(self, pending_slot_ids: list[str]):
        super().__init__(
            message="All interview forms must be submitted before the next round",
            code="FORMS_PENDING",
            status_code=409,
            details={"pendingSlotIds": pending_slot_ids},
        )


def _error_response(status_code: int, code: str, message: str, details: dict) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({
            "error": {
                "code": code,
                "message": message,
                "details": details,
            }
        }),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
        """Handle workflow and API errors."""
        logger.warning(
            "API error",
            code=exc.code,
            message=exc.message,
            path=request.url.path,
        )
        return _error_response(exc.status_code, exc.code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc) -> JSONResponse:
        """Handle Pydantic validation errors."""
        errors = exc.errors()
        first_error = errors[0] if errors else {}
        field = ".".join(str(loc) for loc in first_error.get("loc", []))
        message = first_error.get("msg", "Validation error")

        logger.warning(
            "Validation error",
            field=field,
            message=message,
            path=request.url.path,
        )
        return _error_response(
            422,
            "VALIDATION_ERROR",
            message,
            {"field": field, "errors": errors},
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        """Handle database errors."""
        logger.error(
            "Database error",
            error=str(exc),
            path=request.url.path,
        )
        return _error_response(500, "DATABASE_ERROR", "A database error occurred", {})

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected errors."""
        logger.exception(
            "Unexpected error",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        return _error_response(500, "INTERNAL_ERROR", "An unexpected error occurred", {})
