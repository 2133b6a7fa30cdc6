"""FastAPI application (cockpit ingestion + enrichment surface).

Operational goals:
- Shared-secret auth checked before any store work
- Typed core errors mapped to stable status codes
- Request-id propagation and structured access logs
- Safe failure modes: storage outages are 503, never a partial write
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from app.api.v1.router import router as api_router
import app.models as _models  # noqa: F401  (register all ORM models deterministically)
from ingestion.core.errors import (
    AuthError,
    ConfigError,
    IngestionError,
    PersistenceError,
    ValidationError,
    truncate_message,
)


logger = logging.getLogger("cockpit")
# Access logs are emitted by default.
logger.setLevel(logging.INFO)

UNAVAILABLE_DETAIL = "Service temporarily unavailable."


def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "detail": detail})


def _request_validation_detail(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Bad request"
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = str(first.get("msg", "invalid"))
    return f"{loc}: {msg}" if loc else msg


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthError)
    async def _auth(request: Request, exc: AuthError) -> JSONResponse:
        return _error(401, "Unauthorized")

    @app.exception_handler(ValidationError)
    async def _validation(request: Request, exc: ValidationError) -> JSONResponse:
        return _error(400, truncate_message(exc, 400))

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, truncate_message(_request_validation_detail(exc), 400))

    @app.exception_handler(ConfigError)
    async def _config(request: Request, exc: ConfigError) -> JSONResponse:
        logger.error("configuration error: %s", exc)
        return _error(500, str(exc))

    @app.exception_handler(PersistenceError)
    async def _persistence(request: Request, exc: PersistenceError) -> JSONResponse:
        logger.error("storage unavailable: %s", truncate_message(exc, 200))
        return _error(503, UNAVAILABLE_DETAIL)

    @app.exception_handler(OperationalError)
    async def _operational(request: Request, exc: OperationalError) -> JSONResponse:
        logger.error("database operational error: %s", type(exc.orig).__name__ if exc.orig else "unknown")
        return _error(503, UNAVAILABLE_DETAIL)

    @app.exception_handler(IngestionError)
    async def _ingestion(request: Request, exc: IngestionError) -> JSONResponse:
        logger.error("unhandled %s: %s", type(exc).__name__, truncate_message(exc, 200))
        return _error(500, "Internal error.")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Cockpit Feed API",
        version="1.0.0",
        openapi_url="/openapi.json",
        docs_url=None,
        redoc_url=None,
        description="Ingestion, source polling and enrichment for the market cockpit.",
    )

    register_exception_handlers(app)
    app.include_router(api_router)

    @app.middleware("http")
    async def request_id_and_access_log(request: Request, call_next: Callable):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        start = time.time()
        try:
            response = await call_next(request)
        except OperationalError:
            logger.error("database unavailable", extra={"request_id": request_id})
            response = _error(503, UNAVAILABLE_DETAIL)
        except Exception:  # noqa: BLE001
            logger.exception("Unhandled error", extra={"request_id": request_id})
            response = _error(500, "Internal error.")

        duration_ms = int((time.time() - start) * 1000)
        response.headers["x-request-id"] = request_id

        # Structured access log (no secrets, headers or bodies).
        logger.info(
            json.dumps(
                {
                    "event": "access",
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": getattr(response, "status_code", None),
                    "duration_ms": duration_ms,
                }
            )
        )
        return response

    return app


app = create_app()
