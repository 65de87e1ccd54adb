"""
Exception handlers rendering the broker's two error envelopes.

    {"error": {"code": ..., "message": ...}}      broker endpoints
    {"error": ..., "error_description": ...}      OAuth-shaped endpoints

Anything unexpected collapses to ``internal_server_error`` without detail.
"""

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import DomainException, ErrorKind, InvalidBearerToken

logger = logging.getLogger(__name__)

BEARER_INVALID_TOKEN_CHALLENGE = 'Bearer error="invalid_token"'


def _code_from_status(status_code: int) -> str:
    mapping = {
        400: "bad_request",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        405: "method_not_allowed",
        422: "validation_error",
        429: "too_many_requests",
    }
    return mapping.get(status_code, "http_error")


def _error_body(code: str, message: str, **extra: Any) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    error.update(extra)
    return {"error": error}


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> Response:
        if isinstance(exc, InvalidBearerToken):
            return Response(
                status_code=exc.status_code,
                headers={"WWW-Authenticate": BEARER_INVALID_TOKEN_CHALLENGE},
            )
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(exc.to_body(), status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return JSONResponse(
            _error_body(_code_from_status(exc.status_code), message),
            status_code=exc.status_code,
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            _error_body(
                "validation_error",
                "Request validation failed",
                details=jsonable_encoder(exc.errors()),
            ),
            status_code=422,
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        kind = ErrorKind.INTERNAL
        return JSONResponse(_error_body(kind.code, kind.template), status_code=kind.status_code)
