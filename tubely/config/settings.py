"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Settings are only read at the edges (dependencies, app factory). The
pipeline and storage clients receive explicit config values built from
them, so tests can run several configurations side by side.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.media.pipeline import PipelineConfig
from ..infrastructure.storage.client import StorageConfig


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like api_tokens), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Tubely API"
    api_version: str = "v1"
    api_tokens: str = Field(
        default="dev-token:dev-user",
        description="Comma-separated token:user_id pairs accepted as bearer credentials."
    )

    # S3 Storage Configuration
    s3_bucket: str = Field(
        default="tubely-videos",
        description="Bucket that receives processed videos and thumbnails"
    )
    s3_region: str = Field(
        default="us-east-1",
        description="Bucket region"
    )
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom endpoint for S3-compatible stores (R2, MinIO). Unset for AWS."
    )
    s3_access_key_id: str = Field(
        default="",
        description="Access key ID. Empty falls back to boto3's credential chain."
    )
    s3_secret_access_key: str = Field(
        default="",
        description="Secret access key"
    )
    s3_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real S3. Enables local dev without a bucket."
    )

    # URL Policy
    url_policy: Literal["signed", "direct"] = Field(
        default="signed",
        description="signed: store bucket,key and sign on read. direct: store permanent URLs."
    )
    direct_base_url: Optional[str] = Field(
        default=None,
        description="Base for direct URLs, may contain {bucket}. Defaults to the S3 bucket host."
    )
    signed_url_expiry_seconds: int = Field(
        default=900,
        ge=1,
        description="Lifetime of each signed URL. 15 minutes covers a viewing session."
    )

    # Upload Limits
    max_upload_size_mb: int = Field(
        default=1024,
        ge=1,
        description="Maximum upload size in MB. Rejected before staging when declared."
    )
    staging_dir: Optional[Path] = Field(
        default=None,
        description="Directory for scratch files. Defaults to the system temp dir."
    )

    # Media Tools
    ffprobe_path: str = Field(default="ffprobe", description="ffprobe binary")
    ffmpeg_path: str = Field(default="ffmpeg", description="ffmpeg binary")
    probe_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Deadline for one ffprobe run"
    )
    remux_timeout_seconds: float = Field(
        default=600.0,
        gt=0,
        description="Deadline for one ffmpeg remux. Streams are copied, so this is generous."
    )
    media_tools_mock_mode: bool = Field(
        default=False,
        description="Fake ffprobe/ffmpeg with canned output. Enables local dev without FFmpeg."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def api_tokens_map(self) -> dict[str, str]:
        """Parse comma-separated token:user_id pairs into a dict."""
        tokens = {}
        for pair in self.api_tokens.split(","):
            token, sep, user_id = pair.strip().partition(":")
            if sep and token.strip() and user_id.strip():
                tokens[token.strip()] = user_id.strip()
        return tokens

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def direct_url_base(self) -> str:
        """
        Base address for direct URLs.

        Falls back to the virtual-hosted S3 address for the bucket's region.
        """
        if self.direct_base_url:
            return self.direct_base_url
        return f"https://{{bucket}}.s3.{self.s3_region}.amazonaws.com"

    def storage_config(self) -> StorageConfig:
        return StorageConfig(
            access_key_id=self.s3_access_key_id,
            secret_access_key=self.s3_secret_access_key,
            bucket_name=self.s3_bucket,
            region=self.s3_region,
            endpoint_url=self.s3_endpoint_url,
        )

    def pipeline_config(self) -> PipelineConfig:
        return PipelineConfig(max_upload_bytes=self.max_upload_bytes)

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        missing = []

        if not self.api_tokens_map:
            missing.append("API_TOKENS")

        # S3 only required if not in mock mode
        if not self.s3_mock_mode and not self.s3_bucket:
            missing.append("S3_BUCKET")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
