"""Claim routing service — FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from claim_routing.adapters.persistence.database import engine
from claim_routing.config import settings
from claim_routing.infrastructure.api.error_handlers import add_error_handlers
from claim_routing.infrastructure.api.routes_admin import router as admin_router
from claim_routing.infrastructure.api.routes_broadcasts import router as broadcasts_router
from claim_routing.infrastructure.api.routes_health import router as health_router
from claim_routing.infrastructure.api.routes_orders import router as orders_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    try:
        async with engine.begin():
            pass  # Connection pool warmed up
        logger.info("Database connection established")
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Database not available on startup: %s", e)
    yield
    await engine.dispose()


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s | %(message)s",
    )

    app = FastAPI(
        title="Claim Routing Engine",
        description="Automatic assignment of damage claims to craftsmen and partner companies",
        version="0.1.0",
        lifespan=lifespan,
    )

    add_error_handlers(app)

    # Register routers
    app.include_router(health_router, prefix="/api")
    app.include_router(orders_router, prefix="/api")
    app.include_router(admin_router, prefix="/api")
    app.include_router(broadcasts_router, prefix="/api")

    return app


app = create_app()
