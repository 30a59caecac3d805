from __future__ import annotations

import logging
from typing import Annotated, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="INTAKE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="127.0.0.1", description="Interface the server binds to")
    port: int = Field(default=8000, ge=1, le=65535, description="Port the server listens on")
    app_title: str = Field(default="Intake Timeline API", description="FastAPI application title")
    app_description: str = Field(
        default="Workplace incident intake: timeline ordering, submissions and evidence uploads",
        description="Description shown in the OpenAPI document",
    )
    allowed_origins: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed by CORS",
    )
    log_level: str = Field(
        default="INFO",
        description="Application log level (DEBUG/INFO/WARNING/ERROR/CRITICAL)",
    )
    enable_request_logging: bool = Field(
        default=True,
        description="Log every completed request",
    )
    data_dir: str = Field(
        default="data",
        description="Directory for the SQLite document store, draft cache and local attachments",
    )
    # --- document store (Firestore / SQLite fallback) ---
    firestore_enabled: bool = Field(
        default=False,
        description="Persist submissions in Firestore instead of the local SQLite file",
    )
    firestore_project_id: str = Field(
        default="",
        description="GCP project used by the Firestore client (optional)",
    )
    firestore_credentials_path: str = Field(
        default="",
        description="Service account JSON path. Empty means Application Default Credentials",
    )
    firestore_collection: str = Field(
        default="timelineSubmissions",
        description="Firestore collection holding submission documents",
    )
    # --- blob store (Cloud Storage / local disk fallback) ---
    storage_bucket: str = Field(
        default="",
        description="Cloud Storage bucket for attachments. Empty stores files under data_dir",
    )
    public_base_url: str = Field(
        default="",
        description="Public base URL used to build links to locally stored attachments",
    )
    max_attachment_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1024,
        le=100 * 1024 * 1024,
        description="Largest accepted attachment in bytes",
    )
    # --- mail transport ---
    smtp_host: str = Field(default="smtp.gmail.com", description="SMTP server host")
    smtp_port: int = Field(default=465, ge=1, le=65535, description="SMTP server port (implicit TLS)")
    smtp_user: str = Field(default="", description="SMTP login, also used as the sender address")
    smtp_password: str = Field(default="", description="SMTP password or app password")
    notification_recipient: str = Field(
        default="",
        description="Staff address receiving submission notifications. Defaults to smtp_user",
    )
    # --- draft cache ---
    draft_ttl_seconds: int = Field(
        default=60 * 60,
        ge=60,
        le=7 * 24 * 60 * 60,
        description="Lifetime of auto-saved form drafts",
    )

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def _split_origins(cls, value):
        if isinstance(value, str):
            raw = value.strip()
            if raw == "*":
                return ["*"]
            return [origin.strip() for origin in raw.split(",") if origin.strip()]
        return value

    @field_validator("log_level")
    @classmethod
    def _normalise_log_level(cls, value: str) -> str:
        candidate = value.upper()
        if candidate not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            logging.getLogger("intake.settings").warning(
                "Unknown log level '%s', falling back to INFO.", value
            )
            return "INFO"
        return candidate


settings = Settings()
