# lively_icons/errors.py
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import DomainException

logger = logging.getLogger(__name__)

INVALID_REQUEST = "Invalid request"


def _title_from_status(status_code: int) -> str:
    mapping = {
        400: "Bad Request",
        401: "Unauthorized",
        403: "Forbidden",
        404: "Not Found",
        405: "Method Not Allowed",
        409: "Conflict",
        410: "Gone",
        422: "Unprocessable Entity",
        429: "Too Many Requests",
        500: "Internal Server Error",
        501: "Not Implemented",
        502: "Bad Gateway",
    }
    return mapping.get(status_code, "Error")


def error_body(
    *,
    status: int,
    message: Optional[str] = None,
    code: Optional[str] = None,
    details: Optional[Any] = None,
    fields: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """JSON error body: ``error`` and ``status`` always, ``code``/``details`` when present.

    ``fields`` are extra top-level keys clients read directly (``invalidIds``,
    ``passwordProtected``); they never replace the standard keys.
    """
    body: Dict[str, Any] = {}
    if fields:
        body.update(jsonable_encoder(fields))
    body["error"] = message or _title_from_status(status)
    body["status"] = status
    if code:
        body["code"] = code
    if details:
        body["details"] = jsonable_encoder(details)
    return body


def _parse_detail(detail: Any) -> tuple[Optional[str], Optional[str], Optional[Any]]:
    if isinstance(detail, dict):
        code = detail.get("code") if isinstance(detail.get("code"), str) else None
        message = detail.get("message") or detail.get("error") or detail.get("detail")
        detail_text = message if isinstance(message, str) else None
        return detail_text, code, detail.get("details")
    if isinstance(detail, str):
        return detail, None, None
    if detail is None:
        return None, None, None
    return str(detail), None, None


def _validation_response(errors: Any) -> JSONResponse:
    return JSONResponse(
        error_body(status=400, message=INVALID_REQUEST, code="validation_error", details=errors),
        status_code=400,
    )


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            error_body(
                status=exc.status_code,
                message=exc.message,
                code=exc.code,
                details=exc.details,
                fields=exc.fields,
            ),
            status_code=exc.status_code,
            headers=exc.headers(),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        message, code, details = _parse_detail(exc.detail)
        return JSONResponse(
            error_body(status=exc.status_code, message=message, code=code, details=details),
            status_code=exc.status_code,
            headers=exc.headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        message, code, details = _parse_detail(exc.detail)
        return JSONResponse(
            error_body(status=exc.status_code, message=message, code=code, details=details),
            status_code=exc.status_code,
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _validation_response(jsonable_encoder(exc.errors()))

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return _validation_response(jsonable_encoder(exc.errors()))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(error_body(status=500, message="Internal server error"), status_code=500)
