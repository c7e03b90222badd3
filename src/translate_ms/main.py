"""
FastAPI Application Entry Point.

Creates the FastAPI application for translate-ms: configures logging,
builds the Gateway and registers the routes.

Usage:
    # Run with uvicorn
    uvicorn translate_ms.main:app --host 0.0.0.0 --port 8000

    # Or through the CLI
    translate-ms serve --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from translate_ms import __version__
from translate_ms.api.dependencies import get_settings
from translate_ms.api.routes import router
from translate_ms.core.config import Settings
from translate_ms.core.errors import ErrorCode
from translate_ms.core.logging import configure_logging, get_logger, info
from translate_ms.services.gateway import Gateway

_LOG = get_logger("translate-ms.main")


def create_app(settings: Optional[Settings] = None, gateway: Optional[Gateway] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to build the gateway from. Defaults to
            get_settings().
        gateway: A ready Gateway (tests pass one wired with fakes). The
            app closes it on shutdown either way.

    Returns:
        FastAPI: Configured application instance.
    """
    configure_logging()

    if gateway is None:
        gateway = Gateway.from_settings(settings or get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        info(_LOG, "startup", version=__version__)
        yield
        await app.state.gateway.aclose()

    app = FastAPI(title="translate-ms", version=__version__, lifespan=lifespan)
    app.state.gateway = gateway
    app.include_router(router)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError):
        fields = [".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in exc.errors()]
        return JSONResponse(
            status_code=400,
            content={
                "ok": False,
                "error": ErrorCode.INVALID_INPUT,
                "message": "Invalid request body",
                "details": {"reason": "SCHEMA_INVALID", "fields": fields},
            },
        )

    return app


# Global application instance for ASGI servers (uvicorn, gunicorn, etc.)
app = create_app()
