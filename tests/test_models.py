"""Tests for FileZen data models."""

import pytest

from filezen.core.models import (
    Category, FileRecord, ProcessingState, ExecutionSummary, extension_of
)
from filezen.core.storage import StorageRef


class TestExtension:
    """Test extension extraction."""

    def test_extension_is_lowercased(self):
        assert extension_of("Report.PDF") == "pdf"

    def test_name_without_dot(self):
        assert extension_of("README") == ""

    def test_only_last_dot_counts(self):
        assert extension_of("archive.tar.gz") == "gz"

    def test_trailing_dot(self):
        assert extension_of("weird.") == ""

    def test_dotfile(self):
        assert extension_of(".bashrc") == "bashrc"


class TestCategory:
    """Test the closed category set."""

    def test_labels_are_wire_values(self):
        assert Category.labels() == [
            "Documents", "Images", "Videos", "Archives", "Installers",
            "Code", "Audio", "Unknown", "Junk"
        ]

    def test_from_label(self):
        assert Category.from_label("Images") is Category.IMAGES
        assert Category.from_label(Category.CODE) is Category.CODE

    def test_from_label_rejects_outside_values(self):
        assert Category.from_label("images") is None
        assert Category.from_label("Spreadsheets") is None
        assert Category.from_label(None) is None
        assert Category.from_label(3) is None

    def test_fallback_table(self):
        table = Category.get_extensions()
        assert table["pdf"] is Category.DOCUMENTS
        assert table["flac"] is Category.AUDIO
        assert table["dmg"] is Category.INSTALLERS
        assert all(not ext.startswith(".") for ext in table)


class TestFileRecord:
    """Test file record creation."""

    def test_create_fixes_extension_and_ref(self):
        record = FileRecord.create("Photo.JPG", "trips/Photo.JPG", 2048, 1700000000000)

        assert record.extension == "jpg"
        assert record.ref == StorageRef("trips/Photo.JPG", "file")
        assert record.category is Category.UNKNOWN
        assert record.kind == "file"

    def test_to_dict(self):
        record = FileRecord.create("a.txt", "a.txt", 10, 1000)
        record.category = Category.DOCUMENTS

        data = record.to_dict()
        assert data["name"] == "a.txt"
        assert data["path"] == "a.txt"
        assert data["category"] == "Documents"
        assert data["last_modified"] == 1000


class TestStorageRef:
    """Test storage reference resolution."""

    def test_segments(self):
        ref = StorageRef("a/b/c.txt")
        assert ref.name == "c.txt"
        assert ref.parent_segments == ["a", "b"]

    def test_resolve_existing_missing_directory(self, tmp_path):
        ref = StorageRef("missing/c.txt")
        with pytest.raises(FileNotFoundError):
            ref.resolve_existing(tmp_path)
        assert not (tmp_path / "missing").exists()

    def test_resolve_existing_file(self, tmp_path):
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "c.txt").write_text("x")

        assert StorageRef("sub/c.txt").resolve_existing(tmp_path) == tmp_path / "sub" / "c.txt"


class TestProcessingState:
    """Test processing state transitions."""

    def test_progress_never_decreases(self):
        state = ProcessingState()
        state.begin("organize")

        for value in [10, 40, 30, 100, 90]:
            state.advance(value)

        assert state.progress == 100

    def test_progress_is_clamped(self):
        state = ProcessingState()
        state.advance(250)
        assert state.progress == 100

    def test_begin_resets(self):
        state = ProcessingState(progress=100, error="boom")
        state.begin("scan", "Scanning...")

        assert state.scanning is True
        assert state.progress == 0
        assert state.error is None
        assert state.activity == "Scanning..."

        state.finish()
        assert state.scanning is False
        assert state.organizing is False

    def test_unknown_operation(self):
        with pytest.raises(ValueError):
            ProcessingState().begin("delete")


def test_execution_summary_success():
    assert ExecutionSummary(attempted=2, succeeded=2).success
    assert not ExecutionSummary(attempted=2, succeeded=1, failed=1).success
