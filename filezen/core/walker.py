"""Directory walker for FileZen."""

import os
import logging
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .models import FileRecord
from .error_handler import ErrorHandler


class DirectoryWalker:
    """Enumerates every file under a root, skipping excluded names at any depth."""

    def __init__(self, progress_callback: Optional[Callable[[int], None]] = None,
                 follow_symlinks: bool = False):
        """
        Initialize the walker.

        Args:
            progress_callback: Optional callback invoked with the number of files found so far
            follow_symlinks: Whether symlinked directories are descended into
        """
        self.progress_callback = progress_callback
        self.follow_symlinks = follow_symlinks
        self.error_handler = ErrorHandler()
        self.logger = logging.getLogger(__name__)

    def walk(self, root: Path, excluded_names: Optional[Iterable[str]] = None) -> List[FileRecord]:
        """
        Collect a FileRecord for every file reachable from root.

        Any entry whose own name is in excluded_names is skipped, and an excluded
        directory is never descended into.

        Args:
            root: Directory to traverse
            excluded_names: Literal names to skip

        Returns:
            File records in traversal order

        Raises:
            TraversalError: If any directory listing or stat fails; nothing is returned
        """
        root = Path(root)
        excluded = set(excluded_names or ())
        records: List[FileRecord] = []

        self.logger.info(f"Scanning {root} (excluding {sorted(excluded)})")

        # one sorted entry iterator per open directory, deepest last
        stack = [(iter(self._list_directory(root)), "")]
        while stack:
            entries, prefix = stack[-1]
            entry = next(entries, None)
            if entry is None:
                stack.pop()
                continue

            if entry.name in excluded:
                self.logger.debug(f"Skipping excluded entry {entry.path}")
                continue

            relative_path = f"{prefix}/{entry.name}" if prefix else entry.name

            try:
                if entry.is_dir(follow_symlinks=self.follow_symlinks):
                    is_dir = True
                elif entry.is_file():
                    is_dir = False
                else:
                    self.logger.debug(f"Skipping special entry {entry.path}")
                    continue

                if not is_dir:
                    stat = entry.stat()
            except OSError as e:
                self.error_handler.handle_traversal_error(e, entry.path)

            if is_dir:
                stack.append((iter(self._list_directory(Path(entry.path))), relative_path))
                continue

            records.append(FileRecord.create(
                name=entry.name,
                relative_path=relative_path,
                size=stat.st_size,
                last_modified=int(stat.st_mtime * 1000),
            ))

            if self.progress_callback:
                try:
                    self.progress_callback(len(records))
                except Exception as e:
                    self.logger.warning(f"Progress callback error: {e}")

        self.logger.info(f"Scan of {root} found {len(records)} files")
        return records

    def _list_directory(self, directory: Path) -> List[os.DirEntry]:
        try:
            with os.scandir(directory) as it:
                return sorted(it, key=lambda entry: entry.name)
        except OSError as e:
            self.error_handler.handle_traversal_error(e, directory)
