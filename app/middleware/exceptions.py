from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.core.exceptions import AICacheError, InvalidInputError, StoreUnavailableError, AggregationUnavailableError
from app.schemas.response import ErrorResponse, ErrorDetail
from datetime import datetime, timezone
import logging
import uuid

logger = logging.getLogger(__name__)

def _get_error_code(status_code: int) -> str:
    code_map = {
        400: "BAD_REQUEST",
        401: "UNAUTHORIZED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        409: "CONFLICT",
        422: "VALIDATION_ERROR",
        500: "INTERNAL_SERVER_ERROR",
        501: "NOT_IMPLEMENTED",
        503: "SERVICE_UNAVAILABLE",
    }
    return code_map.get(status_code, f"HTTP_{status_code}")

def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())

def _error_response(request: Request, request_id: str, status_code: int, message: str, details=None) -> JSONResponse:
    error_response = ErrorResponse(
        error=ErrorDetail(
            code=_get_error_code(status_code),
            message=message,
            details=details
        ),
        timestamp=datetime.now(timezone.utc).isoformat(),
        path=request.url.path,
        request_id=request_id
    )
    return JSONResponse(status_code=status_code, content=error_response.model_dump())

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    request_id = _request_id(request)
    logger.warning(f"[{request_id}] Validation error: {exc.errors()}", extra={"request_id": request_id})
    return _error_response(
        request, request_id, 422, "Request validation failed",
        details={"validation_errors": jsonable_errors(exc)}
    )

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    request_id = _request_id(request)
    logger.warning(f"[{request_id}] HTTP {exc.status_code}: {exc.detail}", extra={"request_id": request_id})
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _error_response(request, request_id, exc.status_code, message)

async def cache_exception_handler(request: Request, exc: AICacheError):
    request_id = _request_id(request)
    if isinstance(exc, InvalidInputError):
        logger.warning(f"[{request_id}] Invalid cache request: {exc}", extra={"request_id": request_id})
        return _error_response(request, request_id, 400, str(exc))
    if isinstance(exc, (StoreUnavailableError, AggregationUnavailableError)):
        logger.error(f"[{request_id}] Cache store failure: {exc}", extra={"request_id": request_id})
        return _error_response(
            request, request_id, 503, "Cache storage is temporarily unavailable",
            details={"error_type": type(exc).__name__}
        )
    logger.error(f"[{request_id}] Cache failure: {exc}", exc_info=True, extra={"request_id": request_id})
    return _error_response(request, request_id, 500, "An unexpected error occurred")

async def global_exception_handler(request: Request, exc: Exception):
    request_id = _request_id(request)
    logger.error(f"[{request_id}] Unhandled exception: {exc}", exc_info=True, extra={"request_id": request_id})
    return _error_response(
        request, request_id, 500, "An unexpected error occurred",
        details={"error_type": type(exc).__name__}
    )

def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
