"""
Error taxonomy and RFC 7807 problem responses.

Every error the services raise maps to one HTTP status and one stable
machine code:

- ValidationError         malformed input, rejected before persistence (422)
- NotFoundError           missing or cross-tenant record (404)
- IllegalTransitionError  status machine violation (400)
- DuplicateNumberError    document number collision after retry (409)

Responses use media type application/problem+json.
See: https://datatracker.ietf.org/doc/html/rfc7807
"""

from typing import Optional, Dict, Any, List
from enum import Enum
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
import uuid
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

PROBLEM_MEDIA_TYPE = "application/problem+json"

FieldErrors = List[Dict[str, Any]]


class ErrorCode(str, Enum):
    """Stable codes clients can branch on."""

    UNAUTHORIZED = "AUTH_001"
    FORBIDDEN = "AUTH_002"

    VALIDATION_ERROR = "VAL_001"

    NOT_FOUND = "RES_001"
    CONFLICT = "RES_003"
    DUPLICATE_NUMBER = "RES_005"

    BUSINESS_RULE_VIOLATION = "BIZ_001"
    ILLEGAL_TRANSITION = "BIZ_004"

    INTERNAL_ERROR = "SRV_001"

    @property
    def problem_type(self) -> str:
        """BIZ_004 -> /problems/biz-004"""
        return "/problems/" + self.value.lower().replace("_", "-")


STATUS_TITLES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    422: "Validation Error",
    500: "Internal Server Error",
}

# Codes for errors raised by the framework itself (routing, auth headers)
STATUS_CODES = {
    400: ErrorCode.BUSINESS_RULE_VIOLATION,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.CONFLICT,
    422: ErrorCode.VALIDATION_ERROR,
}


def problem_response(
    request: Request,
    status_code: int,
    code: ErrorCode,
    detail: str,
    errors: Optional[FieldErrors] = None,
    trace_id: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    body = {
        "type": code.problem_type,
        "title": STATUS_TITLES.get(status_code, "Error"),
        "status": status_code,
        "detail": detail,
        "instance": request.url.path,
        "code": code.value,
        "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "trace_id": trace_id or uuid.uuid4().hex[:12],
    }
    if errors:
        body["errors"] = errors
    return JSONResponse(
        status_code=status_code,
        content=body,
        media_type=PROBLEM_MEDIA_TYPE,
        headers=headers,
    )


class APIException(HTTPException):
    """Base for every domain error. Subclasses fix status_code and code."""

    status_code = 500
    code = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        detail: str,
        code: Optional[ErrorCode] = None,
        errors: Optional[FieldErrors] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        if code is not None:
            self.code = code
        self.errors = errors
        self.trace_id = uuid.uuid4().hex[:12]
        super().__init__(status_code=type(self).status_code, detail=detail, headers=headers)


class NotFoundError(APIException):
    """Missing record. Records of another company are reported the same way."""

    status_code = 404
    code = ErrorCode.NOT_FOUND

    def __init__(self, resource: str, resource_id: Any = None):
        self.resource = resource
        self.resource_id = resource_id
        if resource_id is None:
            detail = f"{resource} not found"
        else:
            detail = f"{resource} with ID {resource_id} was not found"
        super().__init__(detail)


class ValidationError(APIException):
    """Rejected input. errors holds {"field", "message", "type"} entries."""

    status_code = 422
    code = ErrorCode.VALIDATION_ERROR

    def __init__(self, detail: str, errors: Optional[FieldErrors] = None):
        super().__init__(detail, errors=errors)


class UnauthorizedError(APIException):
    status_code = 401
    code = ErrorCode.UNAUTHORIZED

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(APIException):
    status_code = 403
    code = ErrorCode.FORBIDDEN

    def __init__(self, detail: str = "Permission denied"):
        super().__init__(detail)


class ConflictError(APIException):
    status_code = 409
    code = ErrorCode.CONFLICT


class DuplicateNumberError(ConflictError):
    """A generated document number collided with an existing one."""

    code = ErrorCode.DUPLICATE_NUMBER

    def __init__(self, number: str):
        self.number = number
        super().__init__(f"Document number {number} is already in use")


class BusinessRuleError(APIException):
    status_code = 400
    code = ErrorCode.BUSINESS_RULE_VIOLATION


class IllegalTransitionError(BusinessRuleError):
    """Status machine violation. Not retryable."""

    code = ErrorCode.ILLEGAL_TRANSITION

    def __init__(self, action: str, current_status: str, document: str = "document"):
        self.action = action
        self.current_status = current_status
        self.document = document
        super().__init__(
            f"Cannot {action.replace('_', ' ')} {document} in status '{current_status}'"
        )


def create_exception_handlers(debug: bool = False):
    """
    Handlers registered by main.py, keyed by the exception family they cover.

    Usage in main.py:
        handlers = create_exception_handlers(settings.DEBUG)
        app.add_exception_handler(APIException, handlers["api"])
    """

    async def handle_api_exception(request: Request, exc: APIException) -> JSONResponse:
        logger.warning(
            f"{exc.code.value} {request.method} {request.url.path}: {exc.detail}",
            extra={"trace_id": exc.trace_id, "status_code": exc.status_code},
        )
        return problem_response(
            request,
            exc.status_code,
            exc.code,
            str(exc.detail),
            errors=exc.errors,
            trace_id=exc.trace_id,
            headers=exc.headers,
        )

    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return problem_response(
            request,
            exc.status_code,
            STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR),
            str(exc.detail),
            headers=getattr(exc, "headers", None),
        )

    async def handle_validation_exception(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {
                "field": ".".join(str(part) for part in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
            for error in exc.errors()
        ]
        return problem_response(
            request, 422, ErrorCode.VALIDATION_ERROR, "Request validation failed", errors=errors,
        )

    async def handle_generic_exception(request: Request, exc: Exception) -> JSONResponse:
        trace_id = uuid.uuid4().hex[:12]
        logger.exception(
            f"Unhandled exception on {request.method} {request.url.path}",
            extra={"trace_id": trace_id},
        )
        detail = str(exc) if debug else "An unexpected error occurred"
        return problem_response(request, 500, ErrorCode.INTERNAL_ERROR, detail, trace_id=trace_id)

    return {
        "api": handle_api_exception,
        "http": handle_http_exception,
        "validation": handle_validation_exception,
        "generic": handle_generic_exception,
    }
