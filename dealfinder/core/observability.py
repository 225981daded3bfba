import json
import logging
import time
from contextvars import ContextVar
from uuid import uuid4

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from dealfinder.core.config import settings

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")
package_logger = logging.getLogger("dealfinder")
logger = logging.getLogger("dealfinder.api")


def get_request_id() -> str:
    return request_id_ctx.get()


class JsonLogFormatter(logging.Formatter):
    """Renders each record as one JSON object tagged with the active request id.

    Structured fields passed as ``extra={"fields": {...}}`` are merged into the object.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname.lower(),
            "logger": record.name,
            "request_id": get_request_id(),
            "event": record.getMessage(),
        }
        fields = getattr(record, "fields", None)
        if isinstance(fields, dict):
            payload.update(fields)
        if record.exc_info:
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_observability() -> None:
    if package_logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter())
    package_logger.addHandler(handler)
    package_logger.setLevel(settings.log_level.upper())
    package_logger.propagate = False


def _resolve_request_id(request: Request) -> str:
    return (
        getattr(request.state, "request_id", None)
        or request.headers.get("x-request-id")
        or get_request_id()
    )


def _error_response(
    *,
    status_code: int,
    request: Request,
    code: str,
    message: str,
    details: list[dict] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    request_id = _resolve_request_id(request)
    return JSONResponse(
        status_code=status_code,
        headers=headers,
        content={
            "success": False,
            "message": message,
            "error": {
                "code": code,
                "message": message,
                "request_id": request_id,
                "path": request.url.path,
                "details": details,
            },
        },
    )


async def request_logging_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid4())
    request.state.request_id = request_id
    token = request_id_ctx.set(request_id)
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
    finally:
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.info(
            "request",
            extra={
                "fields": {
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": status_code,
                    "duration_ms": duration_ms,
                }
            },
        )
        request_id_ctx.reset(token)

    response.headers["X-Request-ID"] = request_id
    response.headers["X-API-Timeout-Hint-Ms"] = str(settings.api_timeout_hint_ms)
    return response


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        "unhandled_exception",
        exc_info=(type(exc), exc, exc.__traceback__),
        extra={
            "fields": {
                "request_id": _resolve_request_id(request),
                "path": request.url.path,
                "error": str(exc),
            }
        },
    )
    return _error_response(
        status_code=500,
        request=request,
        code="internal_error",
        message="Internal server error",
    )


_STATUS_CODE_MAP = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
    422: "validation_error",
    429: "rate_limited",
}


async def http_exception_handler(request: Request, exc: HTTPException):
    code = _STATUS_CODE_MAP.get(exc.status_code, "http_error")
    message = exc.detail if isinstance(exc.detail, str) else "HTTP error"
    details = None if isinstance(exc.detail, str) else exc.detail
    return _error_response(
        status_code=exc.status_code,
        request=request,
        code=code,
        message=message,
        details=details,
        headers=exc.headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = []
    for err in exc.errors():
        location = [
            str(part) for part in err.get("loc", []) if part not in {"body", "query", "path", "form"}
        ]
        details.append(
            {
                "field": ".".join(location) if location else "body",
                "message": err.get("msg", "Invalid value"),
                "type": err.get("type"),
            }
        )

    # Surface the first field-level cause as the envelope message.
    message = "Validation failed"
    if details:
        message = f"{details[0]['field']}: {details[0]['message']}"

    return _error_response(
        status_code=400,
        request=request,
        code="validation_error",
        message=message,
        details=details,
    )
