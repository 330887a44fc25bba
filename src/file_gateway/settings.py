# src/file_gateway/settings.py
from typing import Optional
from pydantic import Field, validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """
    Single source of truth for all gateway settings.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    Usage:
        from file_gateway.settings import get_settings
        settings = get_settings()
        buffer_size = settings.range_buffer_size
    """

    # Application Settings
    app_name: str = Field(
        default="file-gateway",
        description="Application name"
    )

    app_id: str = Field(
        default="default",
        description="Application id used when a request does not carry X-Application-Id"
    )

    master_key: Optional[str] = Field(
        default=None,
        description="Key required in X-Master-Key for deletes; deletes are refused when unset"
    )

    public_server_url: str = Field(
        default="http://localhost:8000",
        description="Base URL used to build the url of stored files"
    )

    # Deployment Mode
    deployment_mode: str = Field(
        default="local-dev",
        description="Deployment mode: local-dev (filesystem), aws-mock or aws-prod (S3)"
    )

    # AWS Settings
    aws_region: str = Field(
        default="us-east-1",
        alias="AWS_DEFAULT_REGION"
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        alias="AWS_ENDPOINT_URL"
    )

    s3_bucket_name: str = Field(
        default="file-gateway-storage",
        description="S3 bucket holding the blobs"
    )

    # Storage Configuration
    storage_dir: str = Field(
        default="storage",
        description="Local storage directory"
    )

    # Upload Configuration
    max_upload_size: int = Field(
        default=20 * 1024 * 1024,
        description="Largest accepted upload body in bytes"
    )

    preserve_file_name: bool = Field(
        default=True,
        description="Store uploads under the requested name instead of prefixing a random id"
    )

    # Range streaming
    range_buffer_size: int = Field(
        default=1024 * 1024,
        description="Largest window served for an open-ended range request"
    )

    stream_chunk_size: int = Field(
        default=64 * 1024,
        description="Read size used by streaming storage handles"
    )

    range_probe_workaround: bool = Field(
        default=True,
        description="Answer a bytes=0-2 probe with a one byte body"
    )

    # Lambda
    lambda_base_path: str = Field(
        default="/",
        description="API Gateway stage or mapping prefix stripped from request paths"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @validator('deployment_mode')
    def validate_deployment_mode(cls, v):
        """Validate deployment mode is one of the allowed values."""
        valid_modes = ["local-dev", "aws-mock", "aws-prod"]
        if v not in valid_modes:
            raise ValueError(f"Invalid deployment_mode: {v}. Must be one of {valid_modes}")
        return v

    @validator('range_buffer_size', 'stream_chunk_size', 'max_upload_size')
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("must be a positive number of bytes")
        return v

    @validator('public_server_url')
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")

    @property
    def uses_s3(self) -> bool:
        return self.deployment_mode in ["aws-mock", "aws-prod"]

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
