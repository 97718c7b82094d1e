"""FileZen - scan a directory tree and sort its files into category folders."""

__version__ = "0.1.0"
__author__ = "FileZen Team"
__description__ = "Scan a directory tree and sort its files into category folders"

from .core.models import Category, FileRecord, DuplicateGroup, MoveOperation
from .core.session import OrganizerSession
from .core.rules import RuleStore
from .cli.main import cli

__all__ = [
    "Category",
    "FileRecord",
    "DuplicateGroup",
    "MoveOperation",
    "OrganizerSession",
    "RuleStore",
    "cli"
]
