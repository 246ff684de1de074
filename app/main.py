import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.ai.gemini import DescriptionGenerator, configure_gemini
from app.api.routes import router
from app.blog.exceptions import BlogError
from app.config import get_settings
from app.database import engine, init_db
from app.media.uploader import MediaUploader, configure_media
from app.tasks.scheduler import setup_scheduler, shutdown_scheduler

settings = get_settings()

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup: process-scoped collaborators are created once here
    configure_media(settings)
    app.state.media_uploader = MediaUploader(folder=settings.CLOUDINARY_FOLDER)

    configure_gemini(settings)
    app.state.description_generator = DescriptionGenerator(settings.GEMINI_MODEL)

    # Create tables (development only)
    if settings.DEBUG:
        await init_db()

    if settings.RECONCILE_ENABLED:
        setup_scheduler()

    logger.info(f"{settings.APP_NAME} started")
    yield

    # Shutdown
    await shutdown_scheduler()
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    description="""
    Blog backend: accounts, posts with images, comments, AI descriptions.

    Comments live in their own table and are mirrored as summaries inside
    each post. The comment row is authoritative; the summary list is kept in
    step by the comment service and repaired by periodic reconciliation.
    """,
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)


# Exception handlers
@app.exception_handler(BlogError)
async def blog_error_handler(request: Request, exc: BlogError):
    if exc.status_code >= 500:
        cause = exc.__cause__
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail} (cause: {cause!r})")
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail}
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.debug(f"{request.method} {request.url.path} rejected: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"message": "invalid input"}
    )


# Include routes
app.include_router(router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": settings.APP_NAME,
        "version": "1.0.0",
        "docs": "/docs"
    }
