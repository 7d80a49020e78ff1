# app/core/config.py
from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Document store
    database_url: str = "sqlite:///./studyhub.db"

    # Uploaded file bytes
    storage_backend: Literal["local", "s3"] = "local"
    upload_dir: str = "uploads"
    upload_chunk_size: int = 64 * 1024

    # Only read when storage_backend == "s3"
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    aws_region: str | None = None
    aws_s3_bucket_name: str | None = None
    aws_s3_prefix: str = ""

    # Login sessions
    session_backend: Literal["memory", "database"] = "memory"
    session_cookie_name: str = "studyhub_session"
    session_ttl_seconds: int = 60 * 60 * 24
    session_cookie_secure: bool = False

    # werkzeug password hashing
    password_hash_method: str = "scrypt"
    password_salt_length: int = 16

    log_level: str = "INFO"

    # Tell pydantic-settings to load from .env at project root
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # ignore any extra stuff in .env
    )

    @model_validator(mode="after")
    def check_storage_settings(self) -> "Settings":
        if self.storage_backend == "s3" and not self.aws_s3_bucket_name:
            raise ValueError("AWS_S3_BUCKET_NAME is required when STORAGE_BACKEND=s3")
        if self.upload_chunk_size <= 0:
            raise ValueError("UPLOAD_CHUNK_SIZE must be positive")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
