# backend/mentorship/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.constants import BRAND_NAME
from .errors import register_error_handlers
from .routes import availability, calls, group_sessions, internal, prometheus, slots, stripe_webhooks

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

API_TITLE = f"{BRAND_NAME} API"
API_VERSION = "1.0.0"


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}")
    if not settings.stripe_configured:
        logger.warning("STRIPE_SECRET_KEY is not set; transfers and refunds will fail")
    if not settings.cron_secret.get_secret_value():
        logger.warning("CRON_SECRET is not set; the lifecycle trigger endpoint is disabled")
    yield
    logger.info(f"{BRAND_NAME} API shutting down...")


def create_app() -> FastAPI:
    app = FastAPI(title=API_TITLE, version=API_VERSION, lifespan=app_lifespan)
    register_error_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(slots.router)
    app.include_router(availability.router)
    app.include_router(calls.router)
    app.include_router(group_sessions.router)
    app.include_router(stripe_webhooks.router)
    app.include_router(internal.router)
    app.include_router(prometheus.router)

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"status": "healthy", "service": API_TITLE}

    return app


app = create_app()
