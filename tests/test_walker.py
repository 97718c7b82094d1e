"""Tests for the directory walker and duplicate grouping."""

import errno
import os
import shutil
import sys
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from filezen.core.walker import DirectoryWalker
from filezen.core.duplicates import find_duplicate_groups, resolve_group
from filezen.core.models import FileRecord
from filezen.core.exceptions import TraversalError, ValidationError


class TestDirectoryWalker:
    """Test recursive enumeration and exclusions."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = Path(tempfile.mkdtemp())
        self.walker = DirectoryWalker()

        (self.temp_dir / "b.txt").write_text("bb")
        (self.temp_dir / "a.pdf").write_text("a")
        (self.temp_dir / "docs").mkdir()
        (self.temp_dir / "docs" / "report.docx").write_text("report")
        (self.temp_dir / "node_modules").mkdir()
        (self.temp_dir / "node_modules" / "lib.js").write_text("x")
        (self.temp_dir / "project" / "web" / "node_modules" / "pkg").mkdir(parents=True)
        (self.temp_dir / "project" / "web" / "node_modules" / "pkg" / "index.js").write_text("x")
        (self.temp_dir / "project" / "web" / "app.js").write_text("x")

    def teardown_method(self):
        """Clean up test environment."""
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)

    def test_walk_finds_all_files(self):
        records = self.walker.walk(self.temp_dir)
        paths = {record.relative_path for record in records}

        assert "docs/report.docx" in paths
        assert "node_modules/lib.js" in paths
        assert len(records) == 6

    def test_excluded_names_skipped_at_any_depth(self):
        records = self.walker.walk(self.temp_dir, {"node_modules"})

        for record in records:
            assert "node_modules" not in record.relative_path.split("/")
        assert {record.relative_path for record in records} == {
            "a.pdf", "b.txt", "docs/report.docx", "project/web/app.js"
        }

    def test_excluded_file_name(self):
        records = self.walker.walk(self.temp_dir, {"b.txt"})
        assert "b.txt" not in {record.name for record in records}

    def test_entries_sorted_by_name(self):
        records = self.walker.walk(self.temp_dir, {"node_modules", "project", "docs"})
        assert [record.name for record in records] == ["a.pdf", "b.txt"]

    def test_record_metadata(self):
        records = self.walker.walk(self.temp_dir, {"node_modules", "project", "docs"})
        record = records[1]

        assert record.size == 2
        assert record.extension == "txt"
        assert record.last_modified > 0
        assert record.ref.relative_path == "b.txt"

    def test_empty_directory(self):
        empty = self.temp_dir / "empty"
        empty.mkdir()
        assert self.walker.walk(empty) == []

    def test_progress_callback(self):
        counts = []
        walker = DirectoryWalker(progress_callback=counts.append)
        walker.walk(self.temp_dir, {"node_modules"})
        assert counts == [1, 2, 3, 4]

    def test_nested_order_is_depth_first(self):
        records = self.walker.walk(self.temp_dir, {"node_modules"})
        assert [record.relative_path for record in records] == [
            "a.pdf", "b.txt", "docs/report.docx", "project/web/app.js"
        ]

    def test_symlinked_directory_not_followed_by_default(self):
        (self.temp_dir / "linked").symlink_to(self.temp_dir / "docs", target_is_directory=True)

        records = self.walker.walk(self.temp_dir, {"node_modules", "project"})

        assert "linked/report.docx" not in {record.relative_path for record in records}
        assert len(records) == 3

    def test_symlinked_directory_followed_when_enabled(self):
        (self.temp_dir / "linked").symlink_to(self.temp_dir / "docs", target_is_directory=True)

        walker = DirectoryWalker(follow_symlinks=True)
        records = walker.walk(self.temp_dir, {"node_modules", "project"})

        assert "linked/report.docx" in {record.relative_path for record in records}
        assert len(records) == 4

    def test_special_entries_skipped(self):
        if not hasattr(os, "mkfifo"):
            pytest.skip("named pipes not available")
        os.mkfifo(self.temp_dir / "pipe")

        records = self.walker.walk(self.temp_dir, {"node_modules", "project", "docs"})

        assert [record.name for record in records] == ["a.pdf", "b.txt"]

    def test_tree_deeper_than_recursion_limit(self):
        depth = sys.getrecursionlimit() + 50
        deep_root = self.temp_dir / "deep"
        os.mkdir(deep_root)
        created = []
        current = str(deep_root)
        try:
            for _ in range(depth):
                current = os.path.join(current, "d")
                os.mkdir(current)
                created.append(current)
            leaf = os.path.join(current, "leaf.txt")
            with open(leaf, "w") as f:
                f.write("x")

            records = self.walker.walk(deep_root)

            assert len(records) == 1
            assert records[0].name == "leaf.txt"
            assert records[0].relative_path.count("/") == depth
        finally:
            if os.path.exists(os.path.join(current, "leaf.txt")):
                os.remove(os.path.join(current, "leaf.txt"))
            for path in reversed(created):
                os.rmdir(path)

    def test_listing_failure_raises_traversal_error(self):
        denied = PermissionError(errno.EACCES, "Permission denied")
        with patch("filezen.core.walker.os.scandir", side_effect=denied):
            with pytest.raises(TraversalError):
                self.walker.walk(self.temp_dir)

    def test_failure_in_subdirectory_discards_everything(self):
        real_scandir = os.scandir

        def failing_scandir(path):
            if Path(path).name == "docs":
                raise OSError(errno.EIO, "I/O error")
            return real_scandir(path)

        with patch("filezen.core.walker.os.scandir", side_effect=failing_scandir):
            with pytest.raises(TraversalError):
                self.walker.walk(self.temp_dir)


class TestDuplicateGroups:
    """Test size-based duplicate grouping."""

    def _records(self, sizes):
        return [
            FileRecord.create(f"file{i}.bin", f"file{i}.bin", size, 0)
            for i, size in enumerate(sizes)
        ]

    def test_groups_by_size(self):
        groups = find_duplicate_groups(self._records([100, 100, 200, 300, 300, 300]))

        assert len(groups) == 2
        assert [len(group.files) for group in groups] == [2, 3]
        assert groups[0].id == "size-100"
        assert groups[1].paths == ["file3.bin", "file4.bin", "file5.bin"]
        assert not any(group.resolved for group in groups)

    def test_unique_sizes_have_no_groups(self):
        assert find_duplicate_groups(self._records([1, 2, 3])) == []

    def test_resolve_group(self):
        groups = find_duplicate_groups(self._records([5, 5]))

        group = resolve_group(groups, "size-5")
        assert group.resolved is True

        resolve_group(groups, "size-5", resolved=False)
        assert groups[0].resolved is False

    def test_resolve_unknown_group(self):
        with pytest.raises(ValidationError):
            resolve_group([], "size-1")
