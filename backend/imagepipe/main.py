"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from imagepipe import __version__
from imagepipe.api.v1 import images, pipeline
from imagepipe.core.config import settings
from imagepipe.core.logging import get_logger, setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle hooks."""
    development = settings.APP_ENV == "development"
    setup_logging("DEBUG" if development else settings.LOG_LEVEL, json_output=not development)
    logger = get_logger("startup")
    logger.info("Application starting", env=settings.APP_ENV, upload_dir=settings.UPLOAD_DIR)
    yield
    logger.info("Application shutting down")


app = FastAPI(
    title="Image Pipeline API",
    description="Batch image optimization and background removal pipelines",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

API_PREFIX = "/api/v1"
app.include_router(pipeline.router, prefix=API_PREFIX)
app.include_router(images.router, prefix=API_PREFIX)

# Uploaded and processed files are served straight from the upload directory
Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
app.mount(settings.UPLOAD_URL_PATH, StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Public health-check endpoint."""
    return {"status": "ok", "env": settings.APP_ENV}
