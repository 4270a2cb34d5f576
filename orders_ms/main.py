"""
Orders Microservice
Serves order commands over NATS; health checks and metrics over HTTP on PORT.
"""

from fastapi import FastAPI
from contextlib import asynccontextmanager
from typing import Optional
import subprocess
import os

from shared.core import ServiceHealth, setup_logging, get_logger
from orders_ms.core_settings import Settings, ConfigError, load_settings
from orders_ms.api.routes import router as orders_router
from orders_ms.api.rpc import RpcServer
from orders_ms.application.service import OrderService
from orders_ms.infrastructure import messaging
from orders_ms.infrastructure.db import (
    create_engine,
    create_session_factory,
    init_models,
    sync_database_url,
    wait_for_db,
)
from orders_ms.infrastructure.products import ProductCatalogClient
from orders_ms.infrastructure.repository import SqlAlchemyOrderRepository

SERVICE_DESCRIPTION = "Order management microservice"

logger = get_logger(__name__)


def run_migrations(settings: Settings) -> None:
    """Run ``alembic upgrade head`` against the configured database."""
    logger.info("Running database migrations")
    root = os.path.join(os.path.dirname(__file__), "..")
    env = dict(os.environ, DATABASE_URL=sync_database_url(settings.DATABASE_URL).render_as_string(hide_password=False))
    result = subprocess.run(
        ["alembic", "upgrade", "head"],
        cwd=root,
        env=env,
        capture_output=True,
        text=True,
        check=False
    )
    if result.returncode != 0:
        logger.warning(f"Migration output: {result.stderr}")
    else:
        logger.info("Database migrations completed")


def create_app(settings: Settings) -> FastAPI:
    engine = create_engine(settings.DATABASE_URL)
    state = {"nc": None}

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.SERVICE_NAME} version {settings.SERVICE_VERSION}")

        nc = None
        rpc_server = None
        try:
            await wait_for_db(engine)
            if settings.RUN_MIGRATIONS:
                try:
                    run_migrations(settings)
                except OSError as e:
                    logger.error(f"Migration error: {e}")
            await init_models(engine)
            logger.info("Database models initialized")

            nc = await messaging.connect(settings)
            state["nc"] = nc
            service = OrderService(
                SqlAlchemyOrderRepository(create_session_factory(engine)),
                ProductCatalogClient(nc, timeout=settings.PRODUCTS_TIMEOUT_SECONDS),
            )
            rpc_server = RpcServer(service, queue=settings.SERVICE_NAME)
            rpc_server.include_router(orders_router)
            await rpc_server.start(nc)
            logger.info(f"{settings.SERVICE_NAME} started successfully")

            yield
        finally:
            logger.info(f"Shutting down {settings.SERVICE_NAME}")
            state["nc"] = None
            try:
                if rpc_server is not None:
                    await rpc_server.stop()
                if nc is not None:
                    await nc.drain()
            finally:
                await engine.dispose()

    app = FastAPI(
        title=settings.SERVICE_NAME,
        description=SERVICE_DESCRIPTION,
        version=settings.SERVICE_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url=None,
        openapi_url="/api/openapi.json"
    )

    health_service = ServiceHealth(
        settings.SERVICE_NAME,
        settings.SERVICE_VERSION,
        engine=engine,
        messaging=lambda: state["nc"],
    )
    app.include_router(health_service.create_health_router())

    @app.get("/info")
    async def info():
        """Service information endpoint"""
        return {
            "service": settings.SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "description": SERVICE_DESCRIPTION,
            "environment": os.getenv("ENVIRONMENT", "development"),
            "commands": [route.subject for route in orders_router.routes],
            "endpoints": {
                "health": "/health",
                "ready": "/health/ready",
                "live": "/health/live",
                "metrics": "/metrics",
            }
        }

    return app


def run(settings: Optional[Settings] = None) -> None:
    import uvicorn

    if settings is None:
        try:
            settings = load_settings()
        except ConfigError as e:
            raise SystemExit(str(e))

    setup_logging(
        service_name=settings.SERVICE_NAME,
        level=settings.LOG_LEVEL,
        version=settings.SERVICE_VERSION,
        environment=os.getenv("ENVIRONMENT", "development"),
    )
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.PORT, log_config=None)


if __name__ == "__main__":
    run()
