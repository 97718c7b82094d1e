"""Storage references and root acquisition.

A ``StorageRef`` never holds an open handle: it stores a root-relative path and
the kind last seen by the walker, and is turned into a concrete path only when
an operation needs one.
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from .exceptions import AccessDeniedError, FileZenError
from .error_handler import ErrorHandler


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageRef:
    """Root-relative reference to a file or directory."""
    relative_path: str
    kind: str = "file"

    @property
    def name(self) -> str:
        return self.segments[-1] if self.segments else ""

    @property
    def segments(self) -> list:
        return [part for part in self.relative_path.split("/") if part]

    @property
    def parent_segments(self) -> list:
        return self.segments[:-1]

    def resolve_existing(self, root: Path) -> Path:
        """
        Walk the directory segments from root, creating nothing.

        Args:
            root: Root directory the reference is relative to

        Returns:
            Path of the referenced entry

        Raises:
            FileNotFoundError: If a directory segment or the entry itself is missing
            NotADirectoryError: If a directory segment is not a directory
        """
        current = Path(root)
        for part in self.parent_segments:
            current = current / part
            if not current.exists():
                raise FileNotFoundError(f"Missing directory {current}")
            if not current.is_dir():
                raise NotADirectoryError(f"Not a directory: {current}")

        target = current / self.name
        if self.kind == "file" and not target.is_file():
            raise FileNotFoundError(f"Missing file {target}")
        if self.kind == "directory" and not target.is_dir():
            raise FileNotFoundError(f"Missing directory {target}")
        return target


def acquire_root(path: Union[str, Path], writable: bool = True) -> Path:
    """
    Validate that path can serve as a session root.

    Args:
        path: Directory to acquire
        writable: Whether write access is required (moves need it)

    Returns:
        The resolved root path

    Raises:
        AccessDeniedError: If the path is missing, not a directory or not accessible
    """
    root = Path(path).expanduser()
    error_handler = ErrorHandler(logger)

    try:
        if not root.exists():
            raise AccessDeniedError(f"Directory does not exist: {root}")
        if not root.is_dir():
            raise AccessDeniedError(f"Path is not a directory: {root}")

        # Listing once proves read access on platforms where os.access lies
        next(root.iterdir(), None)

        mode = os.R_OK | os.X_OK
        if writable:
            mode |= os.W_OK
        if not os.access(root, mode):
            access = "read-write" if writable else "read"
            raise AccessDeniedError(f"No {access} access to {root}")
    except FileZenError:
        raise
    except OSError as e:
        error_handler.handle_access_error(e, root)

    resolved = root.resolve()
    logger.info(f"Acquired root {resolved}")
    return resolved
