"""FastAPI application factory and main entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from rankinsight.api.v1.router import api_router
from rankinsight.cache.comparison_cache import ComparisonCache, create_comparison_cache
from rankinsight.common.request_id import RequestIDMiddleware
from rankinsight.comparison.service import UserComparisonService
from rankinsight.core.config import settings
from rankinsight.core.errors import (
    gateway_unavailable_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from rankinsight.core.exceptions import GatewayUnavailableError
from rankinsight.core.logging import get_logger, setup_logging
from rankinsight.core.redis_client import close_redis, init_redis
from rankinsight.db.base import Base
from rankinsight.db.engine import create_db_engine
from rankinsight.db.session import create_session_factory
from rankinsight.population.gateway import PopulationGateway
from rankinsight.population.sql_gateway import SqlPopulationGateway

logger = get_logger(__name__)


def create_app(
    gateway: PopulationGateway | None = None,
    cache: ComparisonCache | None = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    ``gateway`` and ``cache`` default to the SQL population store and the
    configured cache backend; both are created at startup and torn down at
    shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        engine = None
        population = gateway
        if population is None:
            engine = create_db_engine()
            # Create tables (in production, use migrations)
            if settings.ENV == "dev":
                Base.metadata.create_all(bind=engine)
            population = SqlPopulationGateway(create_session_factory(engine))

        if settings.COMPARISON_CACHE_BACKEND == "redis":
            init_redis()
        comparison_cache = cache or create_comparison_cache()
        await comparison_cache.start()

        app.state.comparison_service = UserComparisonService(population, comparison_cache)
        logger.info(
            "comparison_service_started",
            extra={"event": "comparison_service_started", "cache_backend": comparison_cache.backend_name},
        )
        yield
        await comparison_cache.close()
        close_redis()
        if engine is not None:
            engine.dispose()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="1.0.0",
        description="Comparative ranking and insight API for simulation students",
        openapi_url="/openapi.json" if settings.ENV != "prod" else None,
        docs_url="/docs" if settings.ENV != "prod" else None,
        redoc_url=None,
        lifespan=lifespan,
    )

    # Add middleware (order matters - first added is outermost)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(GatewayUnavailableError, gateway_unavailable_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok"}

    return app


# Create app instance
app = create_app()
