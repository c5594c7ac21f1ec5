"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order

For local development:
    uvicorn tubely.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.errors import register_exception_handlers
from .api.middleware import UploadSizeLimitMiddleware
from .api.routes import health, videos
from .config.settings import get_settings

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)

VIDEO_UPLOAD_PREFIX = "/api/video_upload"
THUMBNAIL_UPLOAD_PREFIX = "/api/thumbnail_upload"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Runs on startup and shutdown. Configuration problems are logged here
    so they show up before the first upload fails.
    """
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    logger.info(
        "Tubely API starting",
        extra={
            "version": settings.api_version,
            "url_policy": settings.url_policy,
            "mock_mode": {
                "s3": settings.s3_mock_mode,
                "media_tools": settings.media_tools_mock_mode,
            }
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    yield

    logger.info("Tubely API shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Video upload and hosting API.

        ## Authentication

        All /api endpoints require a bearer token in the `Authorization` header.

        ## Workflow

        1. **Create a record**: `POST /api/videos`
        2. **Upload the video**: `POST /api/video_upload/{video_id}` (form field `video`, MP4)
           - Remuxed for fast start and stored by orientation
        3. **Upload a thumbnail**: `POST /api/thumbnail_upload/{video_id}` (form field `thumbnail`)
        4. **Watch**: `GET /api/videos/{video_id}` returns playable URLs
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Reject oversized uploads before FastAPI spools the multipart body
    app.add_middleware(
        UploadSizeLimitMiddleware,
        limits={
            VIDEO_UPLOAD_PREFIX: settings.max_upload_bytes,
            THUMBNAIL_UPLOAD_PREFIX: videos.MAX_THUMBNAIL_BYTES,
        },
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        videos.router,
        prefix="/api",
        tags=["Videos"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": "Tubely API",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        Logs the full error server-side but returns a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"}
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn imports
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "tubely.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
