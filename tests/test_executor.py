"""Tests for move planning and execution."""

import errno
import shutil
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from filezen.core.planner import (
    plan_moves, default_selection, sort_records, category_stats, format_file_size
)
from filezen.core.executor import MoveExecutor
from filezen.core.audit import AuditLog
from filezen.core.models import Category, FileRecord, MoveOperation, Severity
from filezen.core.storage import StorageRef
from filezen.core.exceptions import ValidationError


def categorized(name, category, relative_path=None, size=1, last_modified=0):
    record = FileRecord.create(name, relative_path or name, size, last_modified)
    record.category = category
    return record


class TestPlanner:
    """Test plan construction."""

    def setup_method(self):
        self.records = [
            categorized("a.pdf", Category.DOCUMENTS, size=30, last_modified=3),
            categorized("mystery.bin", Category.UNKNOWN, size=10, last_modified=1),
            categorized("b.jpg", Category.IMAGES, "photos/b.jpg", size=20, last_modified=2),
        ]

    def test_plan_selected_files(self):
        operations = plan_moves(self.records, ["a.pdf", "b.jpg"])

        assert [op.name for op in operations] == ["a.pdf", "b.jpg"]
        assert operations[1].source_relative_path == "photos/b.jpg"
        assert operations[1].target_category is Category.IMAGES
        assert operations[1].ref == StorageRef("photos/b.jpg")

    def test_unknown_never_planned(self):
        operations = plan_moves(self.records, ["mystery.bin", "a.pdf"])
        assert [op.name for op in operations] == ["a.pdf"]

    def test_unselected_not_planned(self):
        assert plan_moves(self.records, []) == []

    def test_category_overrides(self):
        operations = plan_moves(
            self.records, ["a.pdf", "mystery.bin"],
            {"a.pdf": Category.ARCHIVES, "mystery.bin": "Junk"}
        )
        assert [(op.name, op.target_category) for op in operations] == [
            ("a.pdf", Category.ARCHIVES), ("mystery.bin", Category.JUNK)
        ]

    def test_default_selection_skips_unknown(self):
        assert default_selection(self.records) == ["a.pdf", "b.jpg"]

    def test_sort_records(self):
        assert [r.name for r in sort_records(self.records, "size", "asc")] == [
            "mystery.bin", "b.jpg", "a.pdf"
        ]
        assert [r.name for r in sort_records(self.records)] == [
            "a.pdf", "b.jpg", "mystery.bin"
        ]
        assert [r.name for r in sort_records(self.records, "name", "asc")][0] == "a.pdf"

    def test_sort_records_invalid(self):
        with pytest.raises(ValidationError):
            sort_records(self.records, "color")
        with pytest.raises(ValidationError):
            sort_records(self.records, "name", "sideways")

    def test_category_stats(self):
        assert category_stats(self.records) == {"Documents": 1, "Unknown": 1, "Images": 1}

    def test_format_file_size(self):
        assert format_file_size(512) == "512B"
        assert format_file_size(2048) == "2.0KB"
        assert format_file_size(5 * 1024 * 1024) == "5.0MB"


class TestMoveExecutor:
    """Test copy-then-delete moves."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = Path(tempfile.mkdtemp())
        self.progress = []
        self.audit_log = AuditLog()
        self.executor = MoveExecutor(
            self.temp_dir,
            progress_callback=self.progress.append,
            audit_log=self.audit_log,
        )

    def teardown_method(self):
        """Clean up test environment."""
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)

    def _operation(self, relative_path, category=Category.DOCUMENTS, content="data"):
        path = self.temp_dir / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return MoveOperation(
            ref=StorageRef(relative_path),
            name=path.name,
            source_relative_path=relative_path,
            target_category=category,
        )

    def test_moves_into_category_folder(self):
        operation = self._operation("inbox/report.txt", content="hello")

        summary = self.executor.execute([operation])

        assert summary.to_dict() == {"attempted": 1, "succeeded": 1, "failed": 0}
        assert (self.temp_dir / "Documents" / "report.txt").read_text() == "hello"
        assert not (self.temp_dir / "inbox" / "report.txt").exists()

    def test_progress_reaches_100(self):
        operations = [self._operation(f"file{i}.txt") for i in range(4)]

        self.executor.execute(operations)

        assert self.progress == [25, 50, 75, 100]
        assert self.progress == sorted(self.progress)

    def test_progress_rounding(self):
        operations = [self._operation(f"file{i}.txt") for i in range(3)]
        self.executor.execute(operations)
        assert self.progress == [33, 67, 100]

    def test_progress_halves_round_up(self):
        operations = [self._operation(f"file{i}.txt") for i in range(8)]
        self.executor.execute(operations)
        assert self.progress == [13, 25, 38, 50, 63, 75, 88, 100]

    def test_failed_copy_removes_new_destination(self):
        operation = self._operation("report.txt", content="full contents")

        def partial_copy(src, dst):
            dst.write(src.read(4))
            raise OSError(errno.ENOSPC, "No space left on device")

        with patch("filezen.core.executor.shutil.copyfileobj", side_effect=partial_copy):
            summary = self.executor.execute([operation])

        assert summary.failed == 1
        assert not (self.temp_dir / "Documents" / "report.txt").exists()
        assert (self.temp_dir / "report.txt").read_text() == "full contents"

    def test_failed_copy_keeps_existing_destination(self):
        (self.temp_dir / "Documents").mkdir()
        (self.temp_dir / "Documents" / "report.txt").write_text("old")
        operation = self._operation("report.txt", content="new")

        with patch("filezen.core.executor.shutil.copyfileobj",
                   side_effect=OSError(errno.EIO, "I/O error")):
            summary = self.executor.execute([operation])

        assert summary.failed == 1
        assert (self.temp_dir / "Documents" / "report.txt").exists()
        assert (self.temp_dir / "report.txt").read_text() == "new"

    def test_partial_failure_continues(self):
        operations = [self._operation(f"file{i}.txt") for i in range(1, 6)]
        # a directory in the way makes the third write fail
        (self.temp_dir / "Documents" / "file3.txt").mkdir(parents=True)

        summary = self.executor.execute(operations)

        assert (summary.attempted, summary.succeeded, summary.failed) == (5, 4, 1)
        for i in (1, 2, 4, 5):
            assert (self.temp_dir / "Documents" / f"file{i}.txt").is_file()
            assert not (self.temp_dir / f"file{i}.txt").exists()
        assert (self.temp_dir / "file3.txt").is_file()
        assert (self.temp_dir / "Documents" / "file3.txt").is_dir()
        assert self.progress[-1] == 100

        warnings = [e for e in self.audit_log.entries() if e.severity is Severity.WARNING]
        assert len(warnings) == 1
        assert "file3.txt" in warnings[0].message

    def test_missing_source_counts_as_failure(self):
        operation = self._operation("gone.txt")
        (self.temp_dir / "gone.txt").unlink()

        summary = self.executor.execute([operation])

        assert summary.failed == 1
        assert not (self.temp_dir / "Documents" / "gone.txt").exists()

    def test_existing_destination_overwritten(self):
        (self.temp_dir / "Documents").mkdir()
        (self.temp_dir / "Documents" / "a.txt").write_text("old")
        operation = self._operation("a.txt", content="new")

        self.executor.execute([operation])

        assert (self.temp_dir / "Documents" / "a.txt").read_text() == "new"

    def test_file_already_in_place(self):
        operation = self._operation("Documents/a.txt", content="keep")

        summary = self.executor.execute([operation])

        assert summary.succeeded == 1
        assert (self.temp_dir / "Documents" / "a.txt").read_text() == "keep"

    def test_separate_destination_root(self):
        destination = self.temp_dir / "sorted"
        destination.mkdir()
        executor = MoveExecutor(self.temp_dir, destination_root=destination)

        executor.execute([self._operation("song.mp3", Category.AUDIO)])

        assert (destination / "Audio" / "song.mp3").is_file()
        assert not (self.temp_dir / "song.mp3").exists()

    def test_empty_batch(self):
        summary = self.executor.execute([])
        assert summary.attempted == 0
        assert self.progress == []

    def test_progress_callback_errors_ignored(self):
        def broken(value):
            raise RuntimeError("display gone")

        executor = MoveExecutor(self.temp_dir, progress_callback=broken)
        summary = executor.execute([self._operation("a.txt")])
        assert summary.succeeded == 1
