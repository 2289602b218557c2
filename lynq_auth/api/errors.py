from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..domain.errors import AuthError

log = logging.getLogger("lynq_auth.api")


class EndpointFailure(AuthError):
    """Client-safe stand-in for an internal failure."""
    status_code = 500


@asynccontextmanager
async def fails_as(op: str, message: str) -> AsyncIterator[None]:
    """Let client-facing errors through; log anything else and hide it behind ``message``."""
    try:
        yield
    except AuthError as e:
        if e.public:
            raise
        log.error("%s_failed: %s", op, type(e).__name__, exc_info=e)
        raise EndpointFailure(message) from e
    except Exception as e:
        log.exception("%s_failed", op)
        raise EndpointFailure(message) from e


def _body(message: str, **extra) -> dict:
    return {"success": False, "message": message, **extra}


def _validation_message(exc: RequestValidationError) -> str:
    for err in exc.errors():
        if err.get("type") == "value_error":
            msg = str(err.get("msg", ""))
            return msg.removeprefix("Value error, ")
    return "Invalid request body"


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthError)
    async def _auth_error(_: Request, exc: AuthError):
        return JSONResponse(status_code=exc.status_code, content=_body(exc.message, **exc.extra))

    @app.exception_handler(RequestValidationError)
    async def _validation_error(_: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content=_body(_validation_message(exc)))

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(_: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_body(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    # anything that escaped the routers' fails_as blocks (dependencies, response models)
    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception):
        log.exception("unhandled_error path=%s", request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content=_body("Something went wrong. Please try again."))
