# main.py

"""FastAPI application serving the cafe admin console."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Settings, get_settings

from .admin import AdminConsole
from .errors import ConsoleError
from .middlewares import LoggingMiddleware, RequestIdMiddleware
from .repos.remote_store import RemoteStore
from .routes_admin import router as admin_router
from .routes_public import router as public_router
from .routes_reservations import router as reservations_router
from .stores import build_store
from .utils.responses import err, ok

logger = logging.getLogger("api")


def _validation_details(errors: list[dict]) -> dict:
    return {
        "errors": [
            {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg", "")}
            for error in errors
        ]
    }


def create_app(store: Optional[RemoteStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Build the application; ``store`` replaces the configured backend."""

    app = FastAPI(title="Cafe Console API", version="1.0.0")
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(LoggingMiddleware)

    @app.on_event("startup")
    async def open_store() -> None:
        current = settings or get_settings()
        app.state.store = store or await build_store(current)
        app.state.console = AdminConsole.build(app.state.store, current)
        logger.info("console ready backend=%s", type(app.state.store).__name__)

    @app.on_event("shutdown")
    async def close_store() -> None:
        await app.state.store.close()

    @app.exception_handler(ConsoleError)
    async def console_error_handler(request: Request, exc: ConsoleError):
        logger.warning(
            str(exc),
            extra={"status": exc.status, "route": request.url.path, "code": exc.code},
        )
        return JSONResponse(err(exc.code, str(exc), exc.details()), status_code=exc.status)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            err(422, "Validation Error", _validation_details(exc.errors())),
            status_code=422,
        )

    @app.exception_handler(ValidationError)
    async def model_validation_handler(request: Request, exc: ValidationError):
        return JSONResponse(
            err(422, "Validation Error", _validation_details(exc.errors())),
            status_code=422,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        logger.warning(
            str(exc.detail),
            extra={"status": exc.status_code, "route": request.url.path},
        )
        if isinstance(exc.detail, dict):
            payload = err(exc.detail.get("code", exc.status_code), exc.detail.get("message", ""))
        else:
            payload = err(exc.status_code, exc.detail)
        return JSONResponse(payload, status_code=exc.status_code)

    @app.get("/health")
    async def health() -> dict:
        return ok({"status": "ok"})

    app.include_router(admin_router)
    app.include_router(reservations_router)
    app.include_router(public_router)
    return app


app = create_app()
