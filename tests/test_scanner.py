"""Tests for the directory scanner and size/duration helpers."""
from datetime import datetime
from pathlib import Path

import pytest

from offload.core.errors import JobCancelled, SourceInvalidError
from offload.core.models import MediaType
from offload.services.cancellation import CancellationToken
from offload.services.scanner import (
    DirectoryScanner,
    estimate_duration,
    format_duration,
    format_file_size,
    summarize,
    validate_source,
)

from .fixtures import make_jpeg


class TestValidateSource:
    """Tests for validate_source."""

    def test_missing(self, tmp_path):
        result = validate_source(tmp_path / "nope")
        assert not result.valid
        assert not result.exists
        assert result.error == "Source directory does not exist"

    def test_file(self, tmp_path):
        path = tmp_path / "file.jpg"
        path.touch()
        result = validate_source(path)
        assert not result.valid
        assert result.exists
        assert result.error == "Source path is not a directory"

    def test_empty(self, tmp_path):
        result = validate_source(tmp_path)
        assert result.valid
        assert result.is_empty

    def test_not_empty(self, tmp_path):
        (tmp_path / "a.jpg").touch()
        assert validate_source(tmp_path).is_empty is False


class TestDirectoryScanner:
    """Tests for DirectoryScanner."""

    @pytest.fixture
    def scanner(self):
        """Create a scanner instance."""
        return DirectoryScanner()

    @pytest.fixture
    def sample_tree(self, tmp_path: Path) -> Path:
        """Create a sample card with media, a sidecar and a subfolder."""
        root = tmp_path / "card"
        make_jpeg(root / "b.jpg")
        make_jpeg(root / "A.JPG")
        (root / "clip.mp4").write_bytes(b"\x00" * 64)
        (root / "notes.txt").write_text("not media")
        make_jpeg(root / "DCIM" / "c.jpg")
        return root

    def test_scan_recursive(self, scanner, sample_tree):
        records = scanner.scan(sample_tree)
        names = [r.relative_path for r in records]
        # Sorted by name per directory, subdirectories descended in place
        assert names == ["A.JPG", "DCIM/c.jpg", "b.jpg", "clip.mp4"]

    def test_scan_flat(self, scanner, sample_tree):
        records = scanner.scan(sample_tree, recursive=False)
        assert all("/" not in r.relative_path for r in records)
        assert len(records) == 3

    def test_extension_filter(self, scanner, sample_tree):
        records = scanner.scan(sample_tree, allowed_extensions=[".mp4"])
        assert [r.name for r in records] == ["clip.mp4"]

    def test_record_fields(self, scanner, sample_tree):
        records = {r.name: r for r in scanner.scan(sample_tree)}
        photo = records["A.JPG"]
        assert photo.extension == ".jpg"
        assert photo.media_type == MediaType.IMAGE
        assert photo.size == (sample_tree / "A.JPG").stat().st_size
        assert photo.path == sample_tree / "A.JPG"
        assert isinstance(photo.created, datetime)
        assert records["clip.mp4"].media_type == MediaType.VIDEO

    def test_unsupported_excluded(self, scanner, sample_tree):
        assert "notes.txt" not in [r.name for r in scanner.scan(sample_tree)]

    def test_empty_directory(self, scanner, tmp_path):
        assert scanner.scan(tmp_path) == []

    def test_missing_source(self, scanner, tmp_path):
        with pytest.raises(SourceInvalidError, match="does not exist"):
            scanner.scan(tmp_path / "missing")

    def test_file_symlink_followed(self, scanner, sample_tree, tmp_path):
        outside = make_jpeg(tmp_path / "outside.jpg")
        (sample_tree / "link.jpg").symlink_to(outside)
        records = {r.name: r for r in scanner.scan(sample_tree)}
        assert records["link.jpg"].path == sample_tree / "link.jpg"
        assert records["link.jpg"].size == outside.stat().st_size

    def test_directory_symlink_not_descended_by_default(self, scanner, sample_tree, tmp_path):
        make_jpeg(tmp_path / "elsewhere" / "far.jpg")
        (sample_tree / "linked").symlink_to(tmp_path / "elsewhere", target_is_directory=True)
        assert "far.jpg" not in [r.name for r in scanner.scan(sample_tree)]
        followed = DirectoryScanner(follow_symlinks=True).scan(sample_tree)
        assert "linked/far.jpg" in [r.relative_path for r in followed]

    def test_broken_symlink_warns(self, sample_tree):
        warnings = []
        (sample_tree / "dangling.jpg").symlink_to(sample_tree / "gone.jpg")
        records = DirectoryScanner(on_warning=warnings.append).scan(sample_tree)
        assert "dangling.jpg" not in [r.name for r in records]
        assert any("dangling.jpg" in w for w in warnings)

    def test_cancelled_token(self, scanner, sample_tree):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(JobCancelled):
            scanner.scan(sample_tree, token=token)


class TestSummarize:
    """Tests for scan statistics."""

    def test_summary(self, tmp_path):
        make_jpeg(tmp_path / "a.jpg", size=(64, 64), mtime=datetime(2020, 1, 1))
        make_jpeg(tmp_path / "b.jpg", mtime=datetime(2024, 6, 1))
        (tmp_path / "c.mov").write_bytes(b"\x00" * 10)
        records = DirectoryScanner().scan(tmp_path)

        summary = summarize(records)
        assert summary.total_files == 3
        assert summary.total_bytes == sum(r.size for r in records)
        assert summary.by_type[MediaType.VIDEO] == (1, 10)
        assert summary.by_type[MediaType.IMAGE][0] == 2
        assert summary.largest.name == "a.jpg"
        assert summary.oldest is not None and summary.newest is not None

    def test_empty(self):
        summary = summarize([])
        assert summary.total_files == 0
        assert summary.largest is None


class TestFormatting:
    """Tests for size and duration formatting."""

    @pytest.mark.parametrize("size,expected", [
        (0, "0 B"),
        (512, "512 B"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (5 * 1024 * 1024, "5 MB"),
        (int(2.5 * 1024 ** 3), "2.5 GB"),
    ])
    def test_format_file_size(self, size, expected):
        assert format_file_size(size) == expected

    def test_estimate_duration(self):
        assert estimate_duration(100 * 1024 * 1024) == pytest.approx(2.0)
        assert estimate_duration(100 * 1024 * 1024, mb_per_second=10) == pytest.approx(10.0)

    @pytest.mark.parametrize("seconds,expected", [
        (42, "42 seconds"),
        (60, "1 minute"),
        (120, "2 minutes"),
        (3900, "1 hour 5 minutes"),
        (7200, "2 hours 0 minutes"),
    ])
    def test_format_duration(self, seconds, expected):
        assert format_duration(seconds) == expected
