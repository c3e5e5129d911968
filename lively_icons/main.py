# lively_icons/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.constants import API_DESCRIPTION, API_VERSION, BRAND_NAME
from .database.sessions import init_session_factory
from .errors import register_error_handlers
from .init_db import init_db
from .middleware.prometheus_middleware import PrometheusMiddleware
from .routes import (
    ai,
    cdn,
    collections,
    health,
    invitations,
    library,
    shared,
    stripe,
    teams,
    templates,
    webhooks,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}")
    init_session_factory()
    init_db()
    yield
    logger.info(f"{BRAND_NAME} API shutting down...")


app = FastAPI(
    title=settings.api_title,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)

register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.app_url],
    allow_credentials=True,
    allow_methods=["GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["*"],
)
app.add_middleware(PrometheusMiddleware)

api = APIRouter(prefix="/api")
api.include_router(ai.router, prefix="/ai")
api.include_router(cdn.public_router, prefix="/cdn")
api.include_router(cdn.router, prefix="/user/cdn")
api.include_router(collections.router, prefix="/user/collections")
api.include_router(library.router, prefix="/user/library")
api.include_router(templates.router, prefix="/user/templates")
api.include_router(teams.router, prefix="/teams")
api.include_router(invitations.router, prefix="/invitations")
api.include_router(shared.router, prefix="/shared")
api.include_router(stripe.router, prefix="/stripe")
api.include_router(webhooks.router, prefix="/webhooks")
api.include_router(health.router, prefix="/health")

app.include_router(api)
app.include_router(health.metrics_router)


__all__ = ["app"]
