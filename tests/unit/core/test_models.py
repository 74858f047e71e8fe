"""Tests for job descriptors and results."""

import json
from pathlib import Path

import pytest

from imgconv.core.models import (
    ConversionResult,
    InputFile,
    JobDescriptor,
    JobResult,
    TargetFormat,
)
from imgconv.exceptions import InputError


class TestTargetFormat:
    """Tests for TargetFormat."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("jpg", TargetFormat.JPG),
            ("JPEG", TargetFormat.JPEG),
            (".png", TargetFormat.PNG),
            (" WebP ", TargetFormat.WEBP),
            ("tif", TargetFormat.TIFF),
            ("psd", TargetFormat.PSD),
        ],
    )
    def test_parse(self, value, expected):
        """Test case, dots and the tif alias."""
        assert TargetFormat.parse(value) is expected

    def test_parse_unknown(self):
        with pytest.raises(InputError, match="Unsupported output format"):
            TargetFormat.parse("bmp")

    def test_jpeg_spellings_share_container(self):
        """Test jpg and jpeg keep their extension but share the container."""
        assert TargetFormat.JPG.extension == "jpg"
        assert TargetFormat.JPEG.extension == "jpeg"
        assert TargetFormat.JPG.container == TargetFormat.JPEG.container == "jpeg"
        assert TargetFormat.JPG.is_jpeg
        assert not TargetFormat.PNG.is_jpeg


class TestJobDescriptor:
    """Tests for JobDescriptor parsing."""

    def test_from_wire_names(self, tmp_path):
        """Test camelCase wire names are accepted."""
        job = JobDescriptor.from_dict(
            {
                "jobId": "abc",
                "workDir": str(tmp_path),
                "outputFormat": "JPG",
                "files": [{"path": str(tmp_path / "a.png"), "originalName": "a.png"}],
            }
        )
        assert job.job_id == "abc"
        assert job.work_dir == tmp_path
        assert job.output_format is TargetFormat.JPG
        assert job.files[0].original_name == "a.png"
        assert job.files[0].size_bytes == 0

    def test_from_python_names(self, tmp_path):
        job = JobDescriptor(
            job_id="abc",
            work_dir=tmp_path,
            files=(InputFile(original_name="a.png", path=tmp_path / "a.png"),),
            output_format="tif",
        )
        assert job.output_format is TargetFormat.TIFF

    def test_invalid_format(self, tmp_path):
        with pytest.raises(InputError, match="Invalid job descriptor"):
            JobDescriptor.from_dict(
                {"jobId": "abc", "workDir": str(tmp_path), "outputFormat": "gif", "files": []}
            )

    def test_missing_fields(self):
        with pytest.raises(InputError):
            JobDescriptor.from_dict({"jobId": "abc"})

    def test_from_json_file(self, tmp_path):
        path = tmp_path / "job.json"
        path.write_text(
            json.dumps(
                {"jobId": "j1", "workDir": str(tmp_path), "outputFormat": "png", "files": []}
            ),
            encoding="utf-8",
        )
        job = JobDescriptor.from_json_file(path)
        assert job.job_id == "j1"
        assert job.files == ()

    def test_from_json_file_invalid(self, tmp_path):
        path = tmp_path / "job.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(InputError, match="must be a JSON object"):
            JobDescriptor.from_json_file(path)

    def test_from_json_file_missing(self, tmp_path):
        with pytest.raises(InputError, match="Cannot read job descriptor"):
            JobDescriptor.from_json_file(tmp_path / "missing.json")

    def test_is_frozen(self, tmp_path):
        job = JobDescriptor(job_id="a", work_dir=tmp_path, files=(), output_format="png")
        with pytest.raises(Exception):
            job.job_id = "b"


class TestResults:
    """Tests for ConversionResult and JobResult."""

    def test_conversion_result_success(self):
        assert ConversionResult("a.png", 10).success
        assert not ConversionResult("a.png", 10, error="boom").success

    def test_conversion_result_to_dict(self):
        assert ConversionResult("a.png", 10).to_dict() == {"filename": "a.png", "size": 10}
        assert ConversionResult("a.png", 10, "x").to_dict()["error"] == "x"

    def test_job_result_ok(self):
        """Test the success wire format."""
        result = JobResult.ok(
            [ConversionResult("a.webp", 5), ConversionResult("b.webp", 7, error="x")],
            Path("/w/converted_images.zip"),
        )
        assert result.failed_count == 1
        assert result.to_dict() == {
            "success": True,
            "convertedFiles": [
                {"filename": "a.webp", "size": 5},
                {"filename": "b.webp", "size": 7},
            ],
            "archivePath": "/w/converted_images.zip",
        }

    def test_job_result_failed(self):
        """Test the failure wire format."""
        assert JobResult.failed("nope").to_dict() == {"success": False, "error": "nope"}
