"""
Exam Review - FastAPI Application
Main application entry point with middleware and route configuration
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from exam_review.api.v1 import api_router
from exam_review.core.config import settings
from exam_review.core.database import init_db

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    configure_logging()

    if settings.OTEL_ENABLED:
        try:
            from exam_review.core.telemetry import init_telemetry
            from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

            init_telemetry()
            FastAPIInstrumentor.instrument_app(app)
        except Exception as e:
            logger.warning("Telemetry initialization skipped: %s", e)

    # Initialize database tables
    await init_db()
    logger.info("Database tables initialized")

    yield

    # Shutdown
    from exam_review.core.database import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Spaced-repetition review scheduling for exam preparation",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API routes
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    # Health check endpoint
    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "exam_review.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
