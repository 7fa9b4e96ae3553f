from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import time
import uuid
from contextlib import asynccontextmanager

from moderation_engine.routers import moderation
from moderation_engine.core.logger import logger
from moderation_engine.core.exceptions import ContentModeratorException, EXCEPTION_STATUS_MAPPING
from moderation_engine.core.config import settings
from moderation_engine.services.moderation_service import build_moderation_service

VERSION = "1.0.0"


# Application lifespan management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the moderation service once at startup and release it on shutdown."""
    logger.info("Starting Content Moderation Engine", extra={"version": VERSION})

    service = build_moderation_service(settings)
    app.state.moderation_service = service
    app.state.started_at = time.time()

    yield

    logger.info("Shutting down Content Moderation Engine")
    page_client = service.url_analyzer.page_client
    if page_client is not None:
        page_client.close()


app = FastAPI(
    title=settings.app_name,
    description="""
    Moderates user-generated content (text, hashtags, URLs, raw images and
    composite events or profiles) and returns one of four verdicts:
    approved, flagged, blocked or requires_review.

    ## Error Handling

    All errors return structured JSON responses with:
    - `error_code`: Machine-readable error identifier
    - `message`: Human-readable error description
    - `details`: Additional error context
    """,
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request ID middleware
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add unique request ID to all requests for tracing."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    logger.info(
        f"Request started",
        extra={
            "request_id": request_id,
            "method": request.method,
            "url": str(request.url),
            "client_ip": request.client.host if request.client else "unknown"
        }
    )

    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time

    response.headers["X-Request-ID"] = request_id
    response.headers["X-Process-Time"] = str(process_time)

    logger.info(
        f"Request completed",
        extra={
            "request_id": request_id,
            "status_code": response.status_code,
            "process_time": process_time
        }
    )

    return response


# Global exception handler
@app.exception_handler(ContentModeratorException)
async def content_moderator_exception_handler(request: Request, exc: ContentModeratorException):
    """Handle moderation exceptions that escape a route."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.error(
        f"Content moderation exception: {exc.message}",
        extra={
            "request_id": request_id,
            "error_code": exc.error_code,
            "details": exc.details
        }
    )

    return JSONResponse(
        status_code=EXCEPTION_STATUS_MAPPING.get(type(exc), 500),
        content={**exc.to_dict(), "request_id": request_id}
    )


app.include_router(moderation.router, tags=["moderation"])


@app.get("/health", tags=["monitoring"])
async def health_check(request: Request):
    """
    Health check endpoint for monitoring and load balancers.

    Reports which image classifiers are loaded; a missing classifier degrades
    its signal but does not make the engine unhealthy.
    """
    service = request.app.state.moderation_service
    classifiers = service.image_analyzer.classifiers

    return {
        "status": "healthy",
        "timestamp": time.time(),
        "version": VERSION,
        "services": {
            "api": "healthy",
            "lexical_matcher": "healthy",
            "image_classifiers": classifiers.loaded_models,
            "url_fetch": "enabled" if service.url_analyzer.page_client is not None else "disabled",
        }
    }


@app.get("/metrics", tags=["monitoring"])
async def get_metrics(request: Request):
    """
    Moderation counters and result cache statistics.
    """
    service = request.app.state.moderation_service
    started_at = getattr(request.app.state, "started_at", None)

    return {
        "timestamp": time.time(),
        "statistics": service.statistics.to_dict(),
        "caches": service.cache_stats,
        "uptime": time.time() - started_at if started_at else None,
    }


@app.get("/", tags=["general"])
async def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": settings.app_name,
        "version": VERSION,
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics",
        "endpoints": {
            "text_moderation": "/api/v1/moderate/text",
            "hashtag_moderation": "/api/v1/moderate/hashtags",
            "url_moderation": "/api/v1/moderate/url",
            "image_moderation": "/api/v1/moderate/image",
            "composite_moderation": "/api/v1/moderate/composite",
            "batch_moderation": "/api/v1/moderate/batch",
            "statistics": "/api/v1/moderate/statistics"
        }
    }
