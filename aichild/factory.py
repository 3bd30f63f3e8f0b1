"""
FastAPI application factory.
"""

import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .core.config import get_settings
from .api.router import router
from .api.generate import validation_error_response

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="AI Child Server",
        description="Relay to Replicate for child image generation",
        version="1.0.0",
        docs_url="/docs" if settings.env == "development" else None,
        redoc_url="/redoc" if settings.env == "development" else None,
    )

    # ── CORS ─────────────────────────────────────────────────────
    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Startup ──────────────────────────────────────────────────
    @app.on_event("startup")
    async def on_startup():
        logging.basicConfig(
            level=getattr(logging, settings.log_level.upper(), logging.INFO),
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
        logger.info("Starting AI Child Server (env=%s)", settings.env)

        from .core.flags import get_flags
        flags = get_flags()
        logger.info(
            "Flags: disk_storage=%s parent_images=%s on_missing_token=%s on_api_failure=%s",
            flags.use_disk_storage, flags.send_parent_images,
            flags.on_missing_token, flags.on_api_failure,
        )
        logger.info(
            "Replicate: token=%s version=%s poll=%dx%.1fs",
            "yes" if settings.replicate_api_token else "no",
            settings.replicate_model_version,
            settings.replicate_poll_max_attempts,
            settings.replicate_poll_interval,
        )

    # ── Shutdown ─────────────────────────────────────────────────
    @app.on_event("shutdown")
    async def on_shutdown():
        from .services.replicate import close_client
        await close_client()
        logger.info("AI Child Server shut down")

    # ── Errors ───────────────────────────────────────────────────
    app.add_exception_handler(RequestValidationError, validation_error_response)

    # ── Routes ───────────────────────────────────────────────────
    app.include_router(router)

    return app
