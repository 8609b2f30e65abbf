"""
Application Configuration

Centralized settings management using Pydantic Settings.
Supports environment variables and .env files.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # ==========================================================================
    # App Settings
    # ==========================================================================
    APP_NAME: str = "Flux Studio Batch Pipeline"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, staging, PROD
    DEBUG: bool = True

    # ==========================================================================
    # Inference Provider (Replicate)
    # ==========================================================================
    REPLICATE_API_URL: str = "https://api.replicate.com/v1"
    # Optional fallback token; the credential store takes precedence
    REPLICATE_API_TOKEN: Optional[str] = None

    # ==========================================================================
    # Asset Provider (Cloudinary)
    # ==========================================================================
    CLOUDINARY_API_URL: str = "https://api.cloudinary.com/v1_1"
    CLOUDINARY_CLOUD_NAME: Optional[str] = None
    CLOUDINARY_API_KEY: Optional[str] = None
    CLOUDINARY_API_SECRET: Optional[str] = None

    # ==========================================================================
    # Pipeline Settings
    # ==========================================================================
    POLL_INTERVAL_SECONDS: float = 5.0
    POLL_MAX_ATTEMPTS: int = 60  # 5 minutes at the default interval
    HTTP_TIMEOUT_SECONDS: float = 60.0
    MAX_IMAGE_SIZE_BYTES: int = 10485760  # 10MB
    MAX_VARIANTS_PER_ITEM: int = 10
    WORKFLOW_TEMPLATE_DIR: Optional[str] = None  # Defaults to the bundled workflows

    # ==========================================================================
    # Local State (gallery, prompt history, credential)
    # ==========================================================================
    KV_BACKEND: str = "local"  # local, redis
    LOCAL_STATE_PATH: str = "./data/state.json"
    LOCAL_STORAGE_PATH: str = "./data/uploads"
    REDIS_URL: str = "redis://localhost:6379/2"
    GALLERY_MAX_ENTRIES: int = 100
    PROMPT_HISTORY_MAX: int = 10

    # ==========================================================================
    # Logging Settings
    # ==========================================================================
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT_JSON: bool = True  # JSON for production, console for development

    # ==========================================================================
    # CORS Settings
    # ==========================================================================
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173,http://localhost:8000"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Global settings instance
settings = Settings()
