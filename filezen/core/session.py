"""Scan, classify, plan and execute pipeline for one root directory."""

import time
import logging
from pathlib import Path
from typing import Callable, Collection, Iterable, List, Mapping, Optional

from .audit import AuditLog
from .classifier import Classifier
from .duplicates import find_duplicate_groups
from .executor import MoveExecutor
from .exceptions import ExecutionError, TraversalError
from .models import Category, DuplicateGroup, ExecutionSummary, FileRecord, ProcessingState, ScanResult
from .oracle import CategorizationOracle, create_oracle
from .planner import default_selection, plan_moves
from .rules import RuleStore, normalize_extension
from .storage import acquire_root
from .walker import DirectoryWalker


class OrganizerSession:
    """Owns the root, the last scan and the processing state of one session."""

    def __init__(self, root: Path, config=None, rule_store: Optional[RuleStore] = None,
                 oracle: Optional[CategorizationOracle] = None,
                 audit_log: Optional[AuditLog] = None,
                 excluded_names: Optional[Iterable[str]] = None):
        """
        Initialize a session for an already acquired root.

        Args:
            root: Root directory (see acquire_root)
            config: Optional application configuration
            rule_store: Rule store; built from config if omitted
            oracle: Categorization oracle; built from config if omitted
            audit_log: Audit log; created with the configured capacity if omitted
            excluded_names: Exclusion set; the configured names if omitted
        """
        from .config import get_config

        self.config = config or get_config()
        self.root = Path(root)
        self.rule_store = rule_store or RuleStore(config=self.config)
        self.classifier = Classifier(oracle if oracle is not None else create_oracle(self.config))
        self.audit_log = audit_log or AuditLog(capacity=self.config.organize.audit_capacity)
        self.exclusions = set(
            excluded_names if excluded_names is not None else self.config.scan.excluded_names
        )
        self.state = ProcessingState()
        self.records: List[FileRecord] = []
        self.duplicate_groups: List[DuplicateGroup] = []
        self.selection: List[str] = []
        self.logger = logging.getLogger(__name__)

        self.rule_store.load()

    @classmethod
    def open(cls, path: Path, **kwargs) -> "OrganizerSession":
        """
        Acquire a root with read-write access and start a session on it.

        Raises:
            AccessDeniedError: If the root cannot be acquired
        """
        root = acquire_root(path, writable=True)
        session = cls(root, **kwargs)
        session.audit_log.info(f"Authorized access to: {root.name}")
        return session

    def scan(self) -> ScanResult:
        """
        Walk the root, group probable duplicates and classify every file.

        Raises:
            TraversalError: If the tree could not be read; previous results are kept
        """
        start_time = time.time()
        self.state.begin("scan", "Scanning local file system...")
        self.audit_log.info("Scanning local file system...")

        try:
            walker = DirectoryWalker(follow_symlinks=self.config.scan.follow_symlinks)
            records = walker.walk(self.root, self.exclusions)
        except TraversalError as e:
            self.state.error = "File system traversal failed."
            self.state.finish()
            self.audit_log.error("Local scan failed.")
            self.logger.error(f"Scan of {self.root} failed: {e}")
            raise

        duplicate_groups = find_duplicate_groups(records)

        if records:
            self.state.activity = f"Analyzing {len(records)} local items..."
            self.audit_log.info(f"Analyzing {len(records)} local items...")
            self.classifier.classify(records, self.rule_store.get())

        self.records = records
        self.duplicate_groups = duplicate_groups
        self.selection = default_selection(records)

        self.state.advance(100)
        self.state.finish()
        self.audit_log.success(f"Scan complete. Found {len(records)} files.")

        return ScanResult(
            records=records,
            duplicate_groups=duplicate_groups,
            selection=list(self.selection),
            duration=time.time() - start_time,
        )

    def organize(self, selection: Optional[Collection[str]] = None,
                 categories: Optional[Mapping[str, Category]] = None,
                 destination_root: Optional[Path] = None,
                 on_progress: Optional[Callable[[int], None]] = None) -> ExecutionSummary:
        """
        Move the selected files into category folders.

        Args:
            selection: Selected names; the current selection if omitted
            categories: Optional verified name-to-category assignments
            destination_root: Root receiving the category folders; the session root if omitted
            on_progress: Called with the batch percentage after each operation

        Returns:
            Summary of the batch. Move failures are reported in the summary and
            in ``state.error`` rather than raised.

        Raises:
            AccessDeniedError: If destination_root cannot be acquired
            TraversalError: If the follow-up rescan fails
        """
        if selection is None:
            selection = self.selection
        operations = plan_moves(self.records, selection, categories)

        if destination_root is not None:
            destination_root = acquire_root(destination_root, writable=True)

        self.state.begin("organize", "Executing batch organization...")
        self.audit_log.info("Executing batch organization...")

        def report_progress(value: int) -> None:
            self.state.advance(value)
            if on_progress:
                on_progress(self.state.progress)

        executor = MoveExecutor(
            self.root,
            destination_root=destination_root,
            progress_callback=report_progress,
            audit_log=self.audit_log,
        )
        try:
            summary = executor.execute(operations)
        finally:
            self.state.finish()

        if summary.success:
            self.state.advance(100)
            self.audit_log.success(f"Organized {summary.succeeded} files successfully.")
        else:
            error = ExecutionError.from_summary(summary)
            self.state.error = str(error)
            self.audit_log.error(f"{error}. Check permissions.")

        if self.config.organize.rescan_after_organize:
            self.scan()
            # the rescan clears the error; keep the batch outcome visible
            if not summary.success:
                self.state.error = str(ExecutionError.from_summary(summary))

        return summary

    def set_rule(self, extension: str, category: Category) -> None:
        """Persist a custom rule; it applies from the next scan."""
        rules = self.rule_store.set(extension, category)
        extension = normalize_extension(extension)
        self.audit_log.info(f"Rule saved: .{extension} -> {rules[extension].value}")

    def delete_rule(self, extension: str) -> bool:
        removed = self.rule_store.delete(extension)
        if removed:
            self.audit_log.info(f"Rule removed: .{normalize_extension(extension)}")
        return removed
