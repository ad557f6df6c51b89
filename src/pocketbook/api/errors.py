"""Exception handlers — every error leaves as {code, message, detail}.

Learn: Services raise PocketbookError subclasses; these handlers are
the only place they turn into HTTP responses. Expected outcomes are
not logged as errors. Anything unexpected is logged with a traceback
and reported as a bare internal_error, with no internals in the body.
"""

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from pocketbook.errors import InternalError, PocketbookError, ValidationError

logger = structlog.get_logger()


def api_error(code: str, message: str, detail: dict[str, Any] | None = None) -> dict[str, Any]:
    return {"code": code, "message": message, "detail": detail or {}}


def _field_name(loc: tuple) -> str:
    # Drop the leading "body" / "query" / "path" marker
    parts = [str(p) for p in loc[1:]] if len(loc) > 1 else [str(p) for p in loc]
    return ".".join(parts)


async def handle_pocketbook_error(request: Request, exc: PocketbookError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    # InternalError was already logged with its traceback where it was raised
    if not isinstance(exc, InternalError):
        logger.info(
            "api.request_rejected",
            path=request.url.path,
            code=exc.code,
            status=exc.status_code,
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields: dict[str, str] = {}
    for error in exc.errors():
        fields.setdefault(_field_name(tuple(error.get("loc", ()))), error.get("msg", "invalid"))
    err = ValidationError.for_fields(fields)
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = "not_found" if exc.status_code == 404 else "http_error"
    return JSONResponse(
        status_code=exc.status_code,
        content=api_error(code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("api.unhandled_exception", path=request.url.path)
    err = InternalError()
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PocketbookError, handle_pocketbook_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected)
