# src/filestore_api/settings.py
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CATEGORIES = [
    "TQM",
    "RD_Nexus",
    "DCO",
    "KPI",
    "SPEC",
    "WAR_ROOM",
    "APPRAISAL",
    "ELEC_SPEC",
]

DEFAULT_ALLOWED_MEDIA_TYPES = {
    "application/pdf": ".pdf",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "application/vnd.ms-excel": ".xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ".xlsx",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "application/vnd.ms-powerpoint": ".ppt",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": ".pptx",
}

DEFAULT_IMAGE_MEDIA_TYPES = ["image/jpeg", "image/jpg", "image/png", "image/gif"]

DEFAULT_STORAGE_PREFIXES = ["tqm_records", "rd_projects", "rd_tasks", "rd_history", "rd_changes"]


class Settings(BaseSettings):
    """
    Single source of truth for all application settings.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    Usage:
        from filestore_api.settings import get_settings
        settings = get_settings()
        upload_dir = settings.upload_dir
    """

    # Application Settings
    app_name: str = Field(
        default="filestore-api",
        description="Application name"
    )

    # Upload store
    upload_dir: Path = Field(
        default=Path("uploads"),
        description="Root directory holding one subdirectory per category"
    )

    categories: List[str] = Field(
        default_factory=lambda: list(DEFAULT_CATEGORIES),
        description="Ordered, closed set of storage categories (systems)"
    )

    default_category: str = Field(
        default="TQM",
        description="Category used when an upload does not name one"
    )

    max_upload_size_bytes: int = Field(
        default=50 * 1024 * 1024,
        description="Largest accepted upload, in bytes"
    )

    allowed_media_types: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_ALLOWED_MEDIA_TYPES),
        description="Accepted media types mapped to their canonical file extension"
    )

    image_media_types: List[str] = Field(
        default_factory=lambda: list(DEFAULT_IMAGE_MEDIA_TYPES),
        description="Media types that get a thumbnail"
    )

    # Thumbnails
    thumbnail_size: int = Field(default=200, description="Thumbnail edge length in pixels")
    thumbnail_quality: int = Field(default=80, description="JPEG quality of thumbnails")
    thumbnail_dir_name: str = Field(
        default=".thumbnails",
        description="Hidden per-category directory holding thumbnails"
    )

    # Bulk operations
    batch_concurrency: int = Field(
        default=3,
        description="Concurrent operations allowed inside one batch request or scan"
    )

    # Backup
    backup_name_prefix: str = Field(
        default="TQM_full_backup",
        description="Prefix of the dated backup archive filename"
    )

    # Record store
    records_db_path: str = Field(
        default="records.db",
        description="SQLite file backing the /api/{collection} document store"
    )

    # HTTP
    static_dir: Optional[Path] = Field(
        default=None,
        description="Optional front-end directory served at /"
    )

    cors_origins: List[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed by the CORS middleware"
    )

    # Object store (bulk download tooling)
    aws_region: str = Field(
        default="us-east-1",
        alias="AWS_DEFAULT_REGION"
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        alias="AWS_ENDPOINT_URL"
    )

    s3_bucket_name: str = Field(
        default="filestore-uploads",
        description="Bucket the download-bucket command pulls from"
    )

    storage_prefixes: List[str] = Field(
        default_factory=lambda: list(DEFAULT_STORAGE_PREFIXES),
        description="Object key prefixes (folders) scanned by download-bucket"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @field_validator("categories")
    @classmethod
    def validate_categories(cls, v):
        """Categories are directory names, so they must be plain, unique path segments."""
        if not v:
            raise ValueError("At least one category must be configured")
        for name in v:
            if not name or name in (".", "..") or "/" in name or "\\" in name or name.startswith("."):
                raise ValueError(f"Invalid category name: {name!r}")
        if len(set(v)) != len(v):
            raise ValueError("Category names must be unique")
        return v

    @field_validator("max_upload_size_bytes", "batch_concurrency", "thumbnail_size")
    @classmethod
    def validate_positive(cls, v, info):
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive, got {v}")
        return v

    @field_validator("allowed_media_types")
    @classmethod
    def normalize_media_types(cls, v):
        return {media_type.lower(): extension.lower() for media_type, extension in v.items()}

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v):
        return v.upper()

    @model_validator(mode="after")
    def check_default_category_is_known(self):
        if self.default_category not in self.categories:
            raise ValueError(
                f"default_category {self.default_category!r} is not one of {self.categories}"
            )
        return self

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()
