"""Tests for the batch orchestrator."""

import json
import zipfile

import pytest
from conftest import FakeRunner, dcraw_tool, make_image

from imgconv.config.settings import BatchConfig, ImgconvSettings, LimitsConfig
from imgconv.core.models import InputFile, JobDescriptor, TargetFormat
from imgconv.core.pipeline import BatchOrchestrator, assign_output_names
from imgconv.exceptions import InputError
from imgconv.tools.availability import ToolAvailability


def settings(**batch) -> ImgconvSettings:
    return ImgconvSettings(batch=BatchConfig(**batch))


class TestAssignOutputNames:
    """Tests for assign_output_names function."""

    def _files(self, *names):
        return [InputFile(original_name=n, path=f"/in/{n}") for n in names]

    def test_unique_names_unchanged(self):
        names = assign_output_names(self._files("a.png", "b.heic"), TargetFormat.WEBP)
        assert names == ["a.webp", "b.webp"]

    def test_collisions_get_suffix(self):
        """Test same-stem inputs do not overwrite each other."""
        names = assign_output_names(
            self._files("a.png", "a.heic", "A.svg", "a_1.png"), TargetFormat.JPG
        )
        assert names == ["a.jpg", "a_1.jpg", "A_2.jpg", "a_1_1.jpg"]


class TestValidate:
    """Tests for BatchOrchestrator.validate."""

    def test_no_files(self, tmp_path):
        job = JobDescriptor(job_id="j", work_dir=tmp_path / "w", files=(), output_format="png")
        with pytest.raises(InputError, match="No files"):
            BatchOrchestrator(settings()).validate(job)

    def test_missing_input(self, tmp_path):
        job = JobDescriptor(
            job_id="j",
            work_dir=tmp_path / "w",
            files=(InputFile(original_name="a.png", path=tmp_path / "a.png"),),
            output_format="png",
        )
        with pytest.raises(InputError, match="Input file missing: a.png"):
            BatchOrchestrator(settings()).validate(job)

    def test_too_many_raw_files(self, make_job, raw_file):
        job = make_job([raw_file] * 3, "jpg")
        limited = ImgconvSettings(limits=LimitsConfig(raw_max_files=2))
        with pytest.raises(InputError, match="Too many RAW files: 3"):
            BatchOrchestrator(limited).validate(job)

    def test_raw_file_too_large(self, make_job, raw_file):
        job = make_job([raw_file], "jpg")
        limited = ImgconvSettings(limits=LimitsConfig(raw_max_file_size=10))
        with pytest.raises(InputError, match="RAW file too large"):
            BatchOrchestrator(limited).validate(job)

    def test_file_too_large(self, make_job, png_file):
        job = make_job([png_file], "jpg")
        limited = ImgconvSettings(limits=LimitsConfig(max_file_size=10))
        with pytest.raises(InputError, match="File too large"):
            BatchOrchestrator(limited).validate(job)


class TestRun:
    """Tests for BatchOrchestrator.run."""

    async def test_sequential_batch(self, make_job, png_file, jpeg_file, no_tools):
        job = make_job([png_file, jpeg_file], "png")
        seen = []

        result = await BatchOrchestrator(
            settings(), availability=no_tools, on_progress=seen.append
        ).run(job)

        assert result.success
        assert [r.filename for r in result.converted_files] == ["a.png", "photo.png"]
        assert [r.filename for r in seen] == ["a.png", "photo.png"]
        assert result.archive_path == job.work_dir / "converted_images.zip"
        with zipfile.ZipFile(result.archive_path) as zf:
            assert zf.namelist() == ["a.png", "photo.png"]

        record = json.loads((job.work_dir / "progress.json").read_text(encoding="utf-8"))
        assert record["done"] == record["total"] == 2
        assert record["status"] == "done"

    async def test_parallel_batch_keeps_input_order(self, make_job, temp_dir, no_tools):
        sources = []
        for index in range(6):
            path = temp_dir / f"img{index}.png"
            make_image(size=(32 + index * 8, 32)).save(path, format="PNG")
            sources.append(path)
        job = make_job(sources, "webp")

        result = await BatchOrchestrator(
            settings(mode="parallel", file_workers=3), availability=no_tools
        ).run(job)

        assert result.success
        assert [r.filename for r in result.converted_files] == [
            f"img{i}.webp" for i in range(6)
        ]

    async def test_duplicate_names_in_archive(self, make_job, temp_dir, png_file, no_tools):
        other = temp_dir / "other"
        other.mkdir()
        twin = other / "a.png"
        make_image().save(twin, format="PNG")
        job = make_job([png_file, twin], "jpg")

        result = await BatchOrchestrator(settings(), availability=no_tools).run(job)

        with zipfile.ZipFile(result.archive_path) as zf:
            assert zf.namelist() == ["a.jpg", "a_1.jpg"]

    async def test_validation_failure_removes_work_dir(self, make_job, png_file, no_tools):
        """Test a batch-level failure reports an error and cleans up."""
        job = make_job([png_file], "png")
        job.files[0].path.unlink()

        result = await BatchOrchestrator(settings(), availability=no_tools).run(job)

        assert not result.success
        assert "Input file missing" in result.error
        assert not job.work_dir.exists()

    async def test_probes_when_no_availability(self, make_job, raw_file, monkeypatch):
        """Test tools are probed once per job when no snapshot is injected."""
        from imgconv.core import pipeline

        probed = []

        def fake_probe(**kwargs):
            probed.append(kwargs)
            return ToolAvailability(dcraw_emu=True, libraw_command="dcraw_emu")

        monkeypatch.setattr(pipeline, "probe", fake_probe)
        job = make_job([raw_file], "png")

        result = await BatchOrchestrator(
            settings(),
            runner_factory=lambda: FakeRunner({"dcraw_emu": dcraw_tool()}),
        ).run(job)

        assert result.success
        assert result.failed_count == 0
        assert len(probed) == 1

    def test_run_sync(self, make_job, png_file, no_tools):
        job = make_job([png_file], "tiff")
        result = BatchOrchestrator(settings(), availability=no_tools).run_sync(job)
        assert result.success
        assert result.converted_files[0].filename == "a.tiff"
