"""Tests for filesystem utilities module."""

import pytest

from imgconv.utils.fs import (
    atomic_write,
    ensure_directory,
    format_size,
    output_name,
    remove_tree,
    safe_filename,
    temporary_directory,
    unlink_quietly,
)


class TestEnsureDirectory:
    """Tests for ensure_directory function."""

    def test_creates_nested_directories(self, tmp_path):
        """Test creating nested directories."""
        nested_dir = tmp_path / "level1" / "level2"
        assert ensure_directory(nested_dir) == nested_dir
        assert nested_dir.is_dir()

    def test_existing_directory(self, tmp_path):
        assert ensure_directory(tmp_path) == tmp_path


class TestSafeFilename:
    """Tests for safe_filename function."""

    def test_removes_special_characters(self):
        """Test replacing path separators and reserved characters."""
        assert safe_filename("file/name") == "file_name"
        assert safe_filename("file\\name") == "file_name"
        assert safe_filename("a:b*c?d") == "a_b_c_d"

    def test_strips_dots_and_spaces(self):
        assert safe_filename("  ..filename..  ") == "filename"

    def test_truncates_keeping_suffix(self):
        result = safe_filename("a" * 300 + ".png", max_length=50)
        assert len(result) == 50
        assert result.endswith(".png")

    def test_empty_falls_back(self):
        assert safe_filename("...") == "image"


class TestOutputName:
    """Tests for output_name function."""

    @pytest.mark.parametrize(
        "original,extension,expected",
        [
            ("IMG_0001.CR2", "jpg", "IMG_0001.jpg"),
            ("photos/IMG_0001.CR2", "png", "IMG_0001.png"),
            ("C:\\Users\\me\\shot.heic", "webp", "shot.webp"),
            ("archive.tar.gz", "png", "archive.tar.png"),
            ("noext", "tiff", "noext.tiff"),
            ("../../etc/passwd", "png", "passwd.png"),
        ],
    )
    def test_output_name(self, original, extension, expected):
        """Test the base name stem plus the target extension."""
        assert output_name(original, extension) == expected


class TestAtomicWrite:
    """Tests for atomic_write context manager."""

    def test_writes_text(self, tmp_path):
        target = tmp_path / "sub" / "out.json"
        with atomic_write(target) as f:
            f.write("{}")
        assert target.read_text() == "{}"

    def test_writes_binary(self, tmp_path):
        target = tmp_path / "out.bin"
        with atomic_write(target, "wb") as f:
            f.write(b"\x00\x01")
        assert target.read_bytes() == b"\x00\x01"

    def test_failure_keeps_original(self, tmp_path):
        """Test an exception leaves the previous content and no temp file."""
        target = tmp_path / "out.txt"
        target.write_text("old")

        with pytest.raises(RuntimeError):
            with atomic_write(target) as f:
                f.write("new")
                raise RuntimeError("boom")

        assert target.read_text() == "old"
        assert list(tmp_path.iterdir()) == [target]

    def test_missing_parent_not_created(self, tmp_path):
        target = tmp_path / "gone" / "out.bin"
        with pytest.raises(FileNotFoundError):
            with atomic_write(target, "wb", create_parents=False) as f:
                f.write(b"x")
        assert not target.parent.exists()


class TestTemporaryDirectory:
    """Tests for temporary_directory context manager."""

    def test_removed_on_exit(self, tmp_path):
        with temporary_directory(parent=tmp_path, prefix=".x-") as temp:
            assert temp.parent == tmp_path
            assert temp.name.startswith(".x-")
            (temp / "file").write_bytes(b"x")
        assert not temp.exists()

    def test_removed_on_error(self, tmp_path):
        with pytest.raises(ValueError):
            with temporary_directory(parent=tmp_path) as temp:
                raise ValueError
        assert not temp.exists()


class TestRemoval:
    """Tests for remove_tree and unlink_quietly."""

    def test_remove_tree(self, tmp_path):
        target = tmp_path / "a"
        (target / "b").mkdir(parents=True)
        assert remove_tree(target)
        assert not target.exists()

    def test_remove_missing_tree(self, tmp_path):
        assert remove_tree(tmp_path / "missing")

    def test_unlink_quietly_missing(self, tmp_path):
        unlink_quietly(tmp_path / "missing")


class TestFormatSize:
    """Tests for format_size function."""

    @pytest.mark.parametrize(
        "size,expected",
        [(0, "0.0 B"), (1023, "1023.0 B"), (1024, "1.0 KB"), (5 * 1024 * 1024, "5.0 MB")],
    )
    def test_format_size(self, size, expected):
        assert format_size(size) == expected
