"""Tests for configuration settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from imgconv.config import constants
from imgconv.config.settings import (
    BatchConfig,
    DecodeConfig,
    EncodingConfig,
    ImgconvSettings,
    get_settings,
    reload_settings,
)


class TestDefaults:
    """Tests for default values."""

    def test_encoding_defaults(self):
        """Test encoder quality defaults."""
        config = EncodingConfig()
        assert config.jpeg_quality == 90
        assert config.png_compress_level == 9
        assert config.webp_quality == 90
        assert config.raw_tiff_quality == 92
        assert config.tiff_compression == "tiff_lzw"

    def test_decode_defaults(self):
        """Test default RAW engine order and retry threshold."""
        config = DecodeConfig()
        assert config.raw_engine_order == ["libraw", "dcraw", "vips"]
        assert config.small_result_threshold == 16 * 1024

    def test_batch_defaults(self):
        """Test batch defaults."""
        config = BatchConfig()
        assert config.mode == "sequential"
        assert config.file_workers == 4
        assert config.archive_name == "converted_images.zip"
        assert config.progress_file == "progress.json"

    def test_settings_defaults(self):
        """Test top-level settings defaults."""
        settings = ImgconvSettings()
        assert settings.log_level == "INFO"
        assert settings.limits.raw_max_files == 10
        assert settings.retention.max_age == 900


class TestValidation:
    """Tests for setting validation."""

    def test_duplicate_engine_rejected(self):
        """Test that an engine cannot appear twice."""
        with pytest.raises(ValidationError, match="repeat"):
            DecodeConfig(raw_engine_order=["vips", "vips"])

    def test_empty_engine_order_rejected(self):
        """Test that at least one engine is required."""
        with pytest.raises(ValidationError, match="at least one"):
            DecodeConfig(raw_engine_order=[])

    def test_unknown_engine_rejected(self):
        """Test that unknown engines are rejected."""
        with pytest.raises(ValidationError):
            DecodeConfig(raw_engine_order=["rawtherapee"])

    def test_quality_out_of_range(self):
        """Test that quality must be 1-100."""
        with pytest.raises(ValidationError):
            EncodingConfig(jpeg_quality=0)
        with pytest.raises(ValidationError):
            EncodingConfig(webp_quality=101)

    def test_invalid_batch_mode(self):
        """Test that only sequential and parallel are accepted."""
        with pytest.raises(ValidationError):
            BatchConfig(mode="threaded")


class TestEnvironment:
    """Tests for environment variable overrides."""

    def test_nested_env_override(self, monkeypatch):
        """Test IMGCONV_ prefixed nested variables."""
        monkeypatch.setenv("IMGCONV_BATCH__MODE", "parallel")
        monkeypatch.setenv("IMGCONV_ENCODING__JPEG_QUALITY", "75")

        settings = ImgconvSettings()

        assert settings.batch.mode == "parallel"
        assert settings.encoding.jpeg_quality == 75

    def test_log_level_override(self, monkeypatch):
        """Test top-level override."""
        monkeypatch.setenv("IMGCONV_LOG_LEVEL", "DEBUG")
        assert ImgconvSettings().log_level == "DEBUG"


class TestYamlFiles:
    """Tests for YAML configuration files."""

    def test_working_directory_file_wins(self, tmp_path, monkeypatch):
        local = tmp_path / "imgconv.yaml"
        home = tmp_path / "config.yaml"
        local.write_text("log_level: ERROR\n")
        home.write_text("log_level: WARNING\nbatch:\n  mode: parallel\n")
        monkeypatch.setattr(constants, "CONFIG_LOCATIONS", [local, home])

        settings = ImgconvSettings()

        assert settings.log_level == "ERROR"
        assert settings.batch.mode == "parallel"

    def test_missing_files_use_defaults(self, tmp_path, monkeypatch):
        monkeypatch.setattr(constants, "CONFIG_LOCATIONS", [tmp_path / "nope.yaml"])
        assert ImgconvSettings().batch.mode == "sequential"


class TestSettingsCache:
    """Tests for get_settings caching."""

    def test_get_settings_is_cached(self):
        """Test the same instance is returned."""
        assert get_settings() is get_settings()

    def test_reload_settings_creates_new_instance(self):
        """Test reload clears the cache."""
        first = get_settings()
        assert reload_settings() is not first


class TestWorkRoot:
    """Tests for work root resolution."""

    def test_relative_work_root(self):
        settings = ImgconvSettings()
        assert settings.get_work_root() == Path(".imgconv/jobs")

    def test_work_root_under_base(self, tmp_path):
        settings = ImgconvSettings(batch=BatchConfig(work_root="jobs"))
        assert settings.get_work_root(tmp_path) == tmp_path / "jobs"
