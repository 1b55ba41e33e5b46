"""
Pydantic Settings — centralized configuration loaded from environment variables.
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    # ── Application ───────────────────────────
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # ── Optimization API ──────────────────────
    OPTIMIZATION_API_BASE_URL: str = "http://localhost:8080"
    OPTIMIZATION_API_KEY: str = ""
    OPTIMIZATION_API_TIMEOUT: float = 30.0

    # ── Background removal (Replicate) ────────
    REPLICATE_API_BASE_URL: str = "https://api.replicate.com/v1"
    REPLICATE_API_TOKEN: str = ""
    REPLICATE_MODEL_VERSION: str = (
        "fb8af171cfa1616ddcf1242c093f9c46bcada5ad4cf6f2fbe8b81b330ec5c003"
    )
    REPLICATE_REQUEST_TIMEOUT: float = 30.0
    BACKGROUND_REMOVAL_TIMEOUT: float = 120.0
    BACKGROUND_REMOVAL_POLL_INTERVAL: float = 3.0

    # ── File Storage ──────────────────────────
    UPLOAD_DIR: str = "uploads"
    UPLOAD_URL_PATH: str = "/uploads"
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024
    RESULT_DOWNLOAD_TIMEOUT: float = 60.0
    FILE_MAX_AGE_SECONDS: int = 86400

    # ── Pipeline ──────────────────────────────
    PIPELINE_MAX_CONCURRENCY: int = Field(default=4, ge=1)
    # Per-operation override of the failure policy, e.g.
    #   PIPELINE_CONTINUE_ON_ERROR='{"remove_background": true}'
    PIPELINE_CONTINUE_ON_ERROR: dict[str, bool] = Field(default_factory=dict)

    # ── Redis / Celery ────────────────────────
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"

    model_config = {"env_file": ["../.env", ".env"], "extra": "ignore"}


settings = Settings()
