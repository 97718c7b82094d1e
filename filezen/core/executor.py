"""Move executor for FileZen.

Each move copies the file into ``<destination root>/<category>/<name>`` and
deletes the original only after the copy completed. A failed move is counted
and the batch carries on with the next operation; there is no rollback across
operations. An existing destination file with the same name is overwritten.
"""

import shutil
import logging
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .models import ExecutionSummary, MoveOperation
from .error_handler import ErrorHandler
from .audit import AuditLog


class MoveExecutor:
    """Performs planned moves strictly in order and reports progress."""

    def __init__(self, source_root: Path, destination_root: Optional[Path] = None,
                 progress_callback: Optional[Callable[[int], None]] = None,
                 audit_log: Optional[AuditLog] = None):
        """
        Initialize the executor.

        Args:
            source_root: Root the operations' relative paths are resolved against
            destination_root: Root receiving the category folders; defaults to source_root
            progress_callback: Called with the batch percentage after each operation
            audit_log: Optional audit log receiving per-failure warnings
        """
        self.source_root = Path(source_root)
        self.destination_root = Path(destination_root) if destination_root else self.source_root
        self.progress_callback = progress_callback
        self.audit_log = audit_log
        self.error_handler = ErrorHandler()
        self.logger = logging.getLogger(__name__)

    def execute(self, operations: Sequence[MoveOperation]) -> ExecutionSummary:
        """
        Perform every operation, continuing past failures.

        Args:
            operations: Planned moves, in the order they must run

        Returns:
            Summary with attempted, succeeded and failed counts
        """
        total = len(operations)
        summary = ExecutionSummary()
        errors: List[Exception] = []

        self.logger.info(f"Executing {total} move(s) into {self.destination_root}")

        for index, operation in enumerate(operations, start=1):
            summary.attempted += 1
            try:
                self.move(operation)
                summary.succeeded += 1
            except OSError as e:
                summary.failed += 1
                errors.append(e)
                self.logger.warning(f"Failed to move {operation.source_relative_path}: {e}")
                if self.audit_log is not None:
                    self.audit_log.warning(f"Could not move {operation.source_relative_path}")

            # percentage rounded half up
            self._report_progress((index * 200 + total) // (total * 2))

        if errors:
            self.error_handler.log_error_summary(errors, "move batch")

        self.logger.info(
            f"Move batch finished: {summary.succeeded} succeeded, {summary.failed} failed"
        )
        return summary

    def move(self, operation: MoveOperation) -> Path:
        """
        Move one file into its category folder.

        Returns:
            Destination path

        Raises:
            OSError: If any step fails; the source is left in place
        """
        category_dir = self.destination_root / operation.target_category.value
        category_dir.mkdir(exist_ok=True)

        source = operation.ref.resolve_existing(self.source_root)
        destination = category_dir / operation.name

        if destination.exists() and source.samefile(destination):
            self.logger.debug(f"{operation.source_relative_path} is already in place")
            return destination

        existed = destination.exists()
        try:
            with open(source, "rb") as src, open(destination, "wb") as dst:
                shutil.copyfileobj(src, dst)
        except OSError:
            if not existed:
                destination.unlink(missing_ok=True)
            raise

        source.unlink()
        self.logger.debug(f"Moved {operation.source_relative_path} -> {destination}")
        return destination

    def _report_progress(self, value: int) -> None:
        if self.progress_callback:
            try:
                self.progress_callback(value)
            except Exception as e:
                self.logger.warning(f"Progress callback error: {e}")
