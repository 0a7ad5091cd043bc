import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.schemas.common import ErrorOut

logger = logging.getLogger(__name__)

_STATUS_TO_CODE = {
    status.HTTP_401_UNAUTHORIZED: "unauthorized",
    status.HTTP_403_FORBIDDEN: "forbidden",
    status.HTTP_429_TOO_MANY_REQUESTS: "rate_limited",
}


def error_code_for_status(status_code: int) -> str:
    return _STATUS_TO_CODE.get(status_code, "request_failed")


def error_response(
    status_code: int,
    message: str,
    code: str,
    details=None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ErrorOut(message=message, code=code, details=details)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body),
        headers=headers,
    )


def _field_errors(exc: RequestValidationError) -> list[dict[str, str]]:
    fields = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        fields.append({"field": ".".join(loc) or "body", "message": error.get("msg", "")})
    return fields


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure as ``{"message", "code", "details"}``."""

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        if any(error.get("type") == "json_invalid" for error in exc.errors()):
            return error_response(
                status.HTTP_400_BAD_REQUEST, "Malformed request", "invalid_request"
            )
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            "Validation failed",
            "validation_error",
            {"fields": _field_errors(exc)},
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code >= 500:
            logger.warning("%s %s -> %s", request.method, request.url.path, exc.detail)
        return error_response(
            exc.status_code,
            str(exc.detail),
            error_code_for_status(exc.status_code),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Unexpected error", "internal_error"
        )
