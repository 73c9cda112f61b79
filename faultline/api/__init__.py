"""faultline HTTP surface — FastAPI application factory."""

from __future__ import annotations

import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from faultline.api.errors import register_error_handlers
from faultline.core.logging import setup_logging

_ENV_CORS_ORIGINS = "FAULTLINE_CORS_ORIGINS"


def create_app() -> FastAPI:
    """Build a FastAPI app with logging configured and error handlers installed.

    Services mount their own routers on the returned app.
    """
    setup_logging()

    app = FastAPI(title="faultline")
    register_error_handlers(app)

    cors_origins = os.environ.get(_ENV_CORS_ORIGINS, "")
    origins = [o.strip() for o in cors_origins.split(",") if o.strip()]
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.get("/health", tags=["ops"])
    async def health() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    return app
