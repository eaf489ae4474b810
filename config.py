"""Configuration management for the application."""
import os
from dotenv import load_dotenv

load_dotenv(override=True)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).lower() == "true"


class Config:
    """Application configuration class."""

    # OpenAI Configuration
    OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")
    OPENAI_API_BASE = os.environ.get("OPENAI_API_BASE")
    OPENAI_VISION_MODEL = os.environ.get("OPENAI_VISION_MODEL", "gpt-4o")
    OPENAI_TEXT_MODEL = os.environ.get("OPENAI_TEXT_MODEL", "gpt-4o")
    CLASSIFICATION_MAX_TOKENS = 5
    CLASSIFICATION_TEMPERATURE = 0.1
    ANALYSIS_MAX_TOKENS = 1200
    ENHANCE_MAX_TOKENS = 1500
    ANALYSIS_TEMPERATURE = 0.4
    MAX_ANALYSIS_REFERENCE_IMAGES = 3

    # Google Cloud Configuration
    GOOGLE_CLOUD_PROJECT = os.environ.get("GOOGLE_CLOUD_PROJECT")
    GCS_BUCKET_NAME = os.environ.get("GCS_BUCKET_NAME")
    MAX_SIMILAR_IMAGES = int(os.environ.get("MAX_SIMILAR_IMAGES", "10"))

    # Google Docs / Drive (report generation)
    GOOGLE_DOCS_CREDENTIALS = os.environ.get("GOOGLE_DOCS_CREDENTIALS")
    GOOGLE_DOCS_TEMPLATE_ID = os.environ.get("GOOGLE_DOCS_TEMPLATE_ID")
    GOOGLE_DRIVE_FOLDER_ID = os.environ.get("GOOGLE_DRIVE_FOLDER_ID")
    DOCS_SETTLE_SECONDS = float(os.environ.get("DOCS_SETTLE_SECONDS", "1.0"))
    REPORT_NAME_PREFIX = os.environ.get("REPORT_NAME_PREFIX", "Appraisal_Report")
    REPORT_IMAGE_SIZE_PT = 150
    GALLERY_COLUMNS = 3

    # WordPress Configuration
    WORDPRESS_API_URL = os.environ.get("WORDPRESS_API_URL")
    WORDPRESS_USERNAME = os.environ.get("WORDPRESS_USERNAME")
    WORDPRESS_APP_PASSWORD = os.environ.get("WORDPRESS_APP_PASSWORD")
    WORDPRESS_METADATA_MAX_LENGTH = 5000
    WORDPRESS_TIMEOUT = 30

    # Storage Configuration: gcs, local, memory
    STORAGE_BACKEND = os.environ.get("STORAGE_BACKEND", "gcs").lower()
    LOCAL_UPLOAD_DIR = os.environ.get("LOCAL_UPLOAD_DIR", "uploads")
    PUBLIC_BASE_URL = os.environ.get("PUBLIC_BASE_URL", "http://localhost:8080").rstrip("/")

    # Secrets: env, secret_manager
    SECRET_SOURCE = os.environ.get("SECRET_SOURCE", "env").lower()

    # Session Configuration
    SESSION_TTL_SECONDS = int(os.environ.get("SESSION_TTL_SECONDS", "3600"))
    MAX_SESSIONS = int(os.environ.get("MAX_SESSIONS", "1000"))

    # Upload Configuration
    MAX_UPLOAD_SIZE_MB = int(os.environ.get("MAX_UPLOAD_SIZE_MB", "10"))
    ALLOWED_IMAGE_TYPES = {
        "image/jpeg": ".jpg",
        "image/png": ".png",
        "image/webp": ".webp",
        "image/gif": ".gif",
    }

    # Security Configuration
    ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")  # development, staging, production
    ALLOWED_ORIGINS = os.environ.get("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
    RATE_LIMIT_ENABLED = _env_bool("RATE_LIMIT_ENABLED", "true")

    # Server Configuration
    DEBUG = _env_bool("DEBUG")
    PORT = int(os.environ.get("PORT", "8080"))
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    @classmethod
    def is_development(cls) -> bool:
        return cls.ENVIRONMENT == "development"

    @classmethod
    def max_upload_bytes(cls) -> int:
        return cls.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    @classmethod
    def validate(cls):
        """Validate required configuration."""
        if cls.STORAGE_BACKEND not in ("gcs", "local", "memory"):
            raise RuntimeError(f"❌ Unknown STORAGE_BACKEND '{cls.STORAGE_BACKEND}' (expected gcs, local or memory)")

        if cls.STORAGE_BACKEND == "gcs" and not cls.GCS_BUCKET_NAME:
            raise RuntimeError("❌ GCS_BUCKET_NAME must be set when STORAGE_BACKEND=gcs")

        if cls.SECRET_SOURCE not in ("env", "secret_manager"):
            raise RuntimeError(f"❌ Unknown SECRET_SOURCE '{cls.SECRET_SOURCE}' (expected env or secret_manager)")

        if cls.SECRET_SOURCE == "secret_manager" and not cls.GOOGLE_CLOUD_PROJECT:
            raise RuntimeError("❌ GOOGLE_CLOUD_PROJECT must be set to read secrets from Secret Manager")

        if cls.SECRET_SOURCE == "env" and not cls.OPENAI_API_KEY:
            raise RuntimeError("❌ OPENAI_API_KEY environment variable is not set!")

        return True
