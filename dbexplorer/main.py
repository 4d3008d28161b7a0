"""Main FastAPI application for the explorer service"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import settings
from .context import AppContext, get_context
from .core_api.routes import router as query_router
from .models import HealthCheckResponse
from .routes import dashboards, databases

# Set up logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Build the application around a context.

    Args:
        context: Pre-built context (tests inject one with a fake backend);
            by default one is created from settings

    Returns:
        FastAPI app
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ctx = context or AppContext.create()
        app.state.context = ctx
        await ctx.startup()
        logger.info(f"{settings.SERVICE_NAME} started")
        yield
        await ctx.shutdown()
        logger.info(f"{settings.SERVICE_NAME} stopped")

    app = FastAPI(
        title=settings.SERVICE_NAME,
        description="Query execution and dashboard widget data service",
        version=__version__,
        lifespan=lifespan
    )

    # The desktop webview serves the UI from its own origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routes
    app.include_router(query_router)
    app.include_router(dashboards.router)
    app.include_router(databases.router)

    @app.get("/health", response_model=HealthCheckResponse)
    async def health_check(ctx: AppContext = Depends(get_context)):
        """Health check endpoint"""
        dependencies = {}

        try:
            dependencies["engine"] = "healthy" if await ctx.backend.health() else "unhealthy"
        except Exception as e:
            logger.error(f"Engine health check failed: {e}")
            dependencies["engine"] = "unhealthy"

        dependencies["store"] = "healthy" if ctx.dashboards.persisted else "unhealthy"

        status = "healthy" if all(v == "healthy" for v in dependencies.values()) else "degraded"

        return HealthCheckResponse(
            status=status,
            service=settings.SERVICE_NAME,
            version=__version__,
            timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            dependencies=dependencies
        )

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "service": settings.SERVICE_NAME,
            "version": __version__,
            "status": "running"
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "dbexplorer.main:app",
        host=settings.SERVICE_HOST,
        port=settings.SERVICE_PORT,
    )
