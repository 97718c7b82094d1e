"""Core engine: scan, classify, plan and move files."""

from .models import (
    Category, FileRecord, DuplicateGroup, MoveOperation, ExecutionSummary,
    ProcessingState, ScanResult, Severity, extension_of
)
from .walker import DirectoryWalker
from .classifier import Classifier
from .duplicates import find_duplicate_groups
from .planner import plan_moves
from .executor import MoveExecutor
from .rules import RuleStore
from .audit import AuditLog
from .session import OrganizerSession

__all__ = [
    "Category",
    "FileRecord",
    "DuplicateGroup",
    "MoveOperation",
    "ExecutionSummary",
    "ProcessingState",
    "ScanResult",
    "Severity",
    "extension_of",
    "DirectoryWalker",
    "Classifier",
    "find_duplicate_groups",
    "plan_moves",
    "MoveExecutor",
    "RuleStore",
    "AuditLog",
    "OrganizerSession"
]
