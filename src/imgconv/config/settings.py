"""Configuration settings using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict, YamlConfigSettingsSource

from imgconv.config import constants
from imgconv.config.constants import (
    DEFAULT_ARCHIVE_NAME,
    DEFAULT_BATCH_TIMEOUT,
    DEFAULT_CALL_TIMEOUT,
    DEFAULT_FILE_WORKERS,
    DEFAULT_HEIC_QUALITY,
    DEFAULT_JOB_MAX_AGE,
    DEFAULT_JPEG_QUALITY,
    DEFAULT_LOG_DIR,
    DEFAULT_MAX_FILE_SIZE,
    DEFAULT_PLACEHOLDER_HEIGHT,
    DEFAULT_PLACEHOLDER_JPEG_QUALITY,
    DEFAULT_PLACEHOLDER_MESSAGE_LENGTH,
    DEFAULT_PLACEHOLDER_WIDTH,
    DEFAULT_PNG_COMPRESS_LEVEL,
    DEFAULT_PROBE_TIMEOUT,
    DEFAULT_PROGRESS_FILE,
    DEFAULT_RAW_MAX_FILE_SIZE,
    DEFAULT_RAW_MAX_FILES,
    DEFAULT_RAW_TIFF_QUALITY,
    DEFAULT_SMALL_RESULT_THRESHOLD,
    DEFAULT_TOOL_CACHE_TTL,
    DEFAULT_WEBP_METHOD,
    DEFAULT_WEBP_QUALITY,
    DEFAULT_WORK_ROOT,
    RAW_ENGINES,
)

RawEngine = Literal["libraw", "dcraw", "vips"]


class EncodingConfig(BaseModel):
    """Encoder quality and compression settings."""

    jpeg_quality: int = Field(default=DEFAULT_JPEG_QUALITY, ge=1, le=100)
    png_compress_level: int = Field(default=DEFAULT_PNG_COMPRESS_LEVEL, ge=0, le=9)
    webp_quality: int = Field(default=DEFAULT_WEBP_QUALITY, ge=1, le=100)
    webp_method: int = Field(default=DEFAULT_WEBP_METHOD, ge=0, le=6)
    tiff_compression: Literal["tiff_lzw", "jpeg"] = "tiff_lzw"
    raw_tiff_quality: int = Field(default=DEFAULT_RAW_TIFF_QUALITY, ge=1, le=100)
    heic_quality: int = Field(default=DEFAULT_HEIC_QUALITY, ge=1, le=100)


class ToolsConfig(BaseModel):
    """External tool invocation settings."""

    probe_timeout: float = Field(default=DEFAULT_PROBE_TIMEOUT, gt=0)
    call_timeout: float = Field(default=DEFAULT_CALL_TIMEOUT, gt=0)
    cache_ttl: float = Field(default=DEFAULT_TOOL_CACHE_TTL, ge=0)


class DecodeConfig(BaseModel):
    """RAW decode chain policy."""

    raw_engine_order: list[RawEngine] = Field(default_factory=lambda: list(RAW_ENGINES))
    small_result_threshold: int = Field(default=DEFAULT_SMALL_RESULT_THRESHOLD, ge=0)

    @field_validator("raw_engine_order")
    @classmethod
    def _no_duplicates(cls, value: list[str]) -> list[str]:
        if len(set(value)) != len(value):
            raise ValueError("raw_engine_order must not repeat an engine")
        if not value:
            raise ValueError("raw_engine_order must name at least one engine")
        return value


class BatchConfig(BaseModel):
    """Batch orchestration settings."""

    mode: Literal["sequential", "parallel"] = "sequential"
    file_workers: int = Field(default=DEFAULT_FILE_WORKERS, ge=1)
    timeout: float = Field(default=DEFAULT_BATCH_TIMEOUT, gt=0)
    archive_name: str = DEFAULT_ARCHIVE_NAME
    progress_file: str = DEFAULT_PROGRESS_FILE
    work_root: str = DEFAULT_WORK_ROOT


class LimitsConfig(BaseModel):
    """Per-batch and per-file limits re-checked by the core."""

    raw_max_files: int = Field(default=DEFAULT_RAW_MAX_FILES, ge=1)
    raw_max_file_size: int = Field(default=DEFAULT_RAW_MAX_FILE_SIZE, ge=1)
    max_file_size: int = Field(default=DEFAULT_MAX_FILE_SIZE, ge=1)


class PlaceholderConfig(BaseModel):
    """Failure placeholder canvas settings."""

    width: int = Field(default=DEFAULT_PLACEHOLDER_WIDTH, ge=200)
    height: int = Field(default=DEFAULT_PLACEHOLDER_HEIGHT, ge=150)
    max_message_length: int = Field(default=DEFAULT_PLACEHOLDER_MESSAGE_LENGTH, ge=10)
    jpeg_quality: int = Field(default=DEFAULT_PLACEHOLDER_JPEG_QUALITY, ge=1, le=100)


class RetentionConfig(BaseModel):
    """Job directory retention."""

    max_age: float = Field(default=DEFAULT_JOB_MAX_AGE, gt=0)


class ImgconvSettings(BaseSettings):
    """Main configuration class for imgconv."""

    model_config = SettingsConfigDict(
        env_prefix="IMGCONV_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Customize settings sources to include the YAML files.

        Files are read in reverse search order so the working directory wins.
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(
                settings_cls, yaml_file=list(reversed(constants.CONFIG_LOCATIONS))
            ),
            file_secret_settings,
        )

    # Sub-configurations
    encoding: EncodingConfig = Field(default_factory=EncodingConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    decode: DecodeConfig = Field(default_factory=DecodeConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    placeholder: PlaceholderConfig = Field(default_factory=PlaceholderConfig)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)

    # Global settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_dir: str = DEFAULT_LOG_DIR

    def get_work_root(self, base_path: Path | None = None) -> Path:
        """Get the directory under which per-job work dirs are created."""
        if base_path:
            return base_path / self.batch.work_root
        return Path(self.batch.work_root)


@lru_cache
def get_settings() -> ImgconvSettings:
    """Get cached settings instance."""
    return ImgconvSettings()


def reload_settings() -> ImgconvSettings:
    """Force reload settings (clear cache)."""
    get_settings.cache_clear()
    return get_settings()
