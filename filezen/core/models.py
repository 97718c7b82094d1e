"""Core data models and enums for FileZen."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Dict, Any
import uuid

from .storage import StorageRef


class Category(Enum):
    """Closed set of categories; values are the stable wire labels."""
    DOCUMENTS = "Documents"
    IMAGES = "Images"
    VIDEOS = "Videos"
    ARCHIVES = "Archives"
    INSTALLERS = "Installers"
    CODE = "Code"
    AUDIO = "Audio"
    UNKNOWN = "Unknown"
    JUNK = "Junk"

    @classmethod
    def get_extensions(cls) -> Dict[str, "Category"]:
        """Get the static fallback mapping of file extensions to categories."""
        return {
            # Documents
            "pdf": cls.DOCUMENTS,
            "docx": cls.DOCUMENTS,
            "txt": cls.DOCUMENTS,

            # Images
            "jpg": cls.IMAGES,
            "png": cls.IMAGES,
            "gif": cls.IMAGES,
            "svg": cls.IMAGES,

            # Videos
            "mp4": cls.VIDEOS,
            "mov": cls.VIDEOS,
            "mkv": cls.VIDEOS,

            # Archives
            "zip": cls.ARCHIVES,
            "rar": cls.ARCHIVES,
            "tar": cls.ARCHIVES,

            # Installers
            "exe": cls.INSTALLERS,
            "dmg": cls.INSTALLERS,
            "pkg": cls.INSTALLERS,

            # Code
            "js": cls.CODE,
            "ts": cls.CODE,
            "py": cls.CODE,
            "html": cls.CODE,

            # Audio
            "mp3": cls.AUDIO,
            "wav": cls.AUDIO,
            "flac": cls.AUDIO,
        }

    @classmethod
    def from_label(cls, label: Any) -> Optional["Category"]:
        """Return the category for a wire label, or None if it is not in the closed set."""
        if isinstance(label, cls):
            return label
        if not isinstance(label, str):
            return None
        try:
            return cls(label)
        except ValueError:
            return None

    @classmethod
    def labels(cls) -> List[str]:
        """All wire labels in declaration order."""
        return [category.value for category in cls]


def extension_of(name: str) -> str:
    """Lowercase text after the last '.', or an empty string when there is none."""
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[1].lower()


@dataclass
class FileRecord:
    """A file discovered by the walker."""
    name: str
    relative_path: str
    size: int
    last_modified: int
    extension: str
    ref: StorageRef
    kind: str = "file"
    category: Category = Category.UNKNOWN

    @classmethod
    def create(cls, name: str, relative_path: str, size: int, last_modified: int) -> "FileRecord":
        """Create a record at discovery time; the extension is fixed here."""
        return cls(
            name=name,
            relative_path=relative_path,
            size=size,
            last_modified=last_modified,
            extension=extension_of(name),
            ref=StorageRef(relative_path, "file"),
        )

    @property
    def modified_date(self) -> datetime:
        return datetime.fromtimestamp(self.last_modified / 1000)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable representation."""
        return {
            "name": self.name,
            "path": self.relative_path,
            "kind": self.kind,
            "size": self.size,
            "last_modified": self.last_modified,
            "extension": self.extension,
            "category": self.category.value,
        }


@dataclass
class DuplicateGroup:
    """Files sharing one byte size. Probable duplicates only; content is never compared."""
    id: str
    size: int
    files: List[str]
    paths: List[str]
    resolved: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "size": self.size,
            "files": list(self.files),
            "paths": list(self.paths),
            "resolved": self.resolved,
        }


@dataclass(frozen=True)
class MoveOperation:
    """One planned move of a file into a category folder."""
    ref: StorageRef
    name: str
    source_relative_path: str
    target_category: Category


@dataclass
class ExecutionSummary:
    """Counts reported by the executor at the end of a batch."""
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0

    @property
    def success(self) -> bool:
        return self.failed == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
        }


@dataclass
class ProcessingState:
    """Transient status of the current session."""
    scanning: bool = False
    organizing: bool = False
    progress: int = 0
    error: Optional[str] = None
    activity: str = ""

    def begin(self, operation: str, activity: str = "") -> None:
        """Enter a scan or organize operation, resetting progress and error."""
        if operation == "scan":
            self.scanning = True
        elif operation == "organize":
            self.organizing = True
        else:
            raise ValueError(f"Unknown operation: {operation}")
        self.progress = 0
        self.error = None
        self.activity = activity

    def finish(self) -> None:
        self.scanning = False
        self.organizing = False
        self.activity = ""

    def advance(self, value: int) -> None:
        """Raise progress to value; progress never moves backwards within an operation."""
        value = max(0, min(100, int(value)))
        if value > self.progress:
            self.progress = value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scanning": self.scanning,
            "organizing": self.organizing,
            "progress": self.progress,
            "error": self.error,
            "activity": self.activity,
        }


@dataclass
class ScanResult:
    """Result of a scan: categorized records, duplicate groups and the default selection."""
    records: List[FileRecord]
    duplicate_groups: List[DuplicateGroup]
    selection: List[str]
    duration: float

    @property
    def total_files(self) -> int:
        return len(self.records)

    @property
    def categorized_files(self) -> int:
        return sum(1 for record in self.records if record.category is not Category.UNKNOWN)


class Severity(Enum):
    """Audit log severities."""
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass
class AuditEntry:
    """A single audit log entry."""
    severity: Severity
    message: str
    timestamp: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "type": self.severity.value,
            "message": self.message,
        }
