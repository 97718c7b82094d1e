"""Persistent extension-to-category rules for FileZen."""

import json
import sqlite3
import logging
from pathlib import Path
from typing import Dict, Optional, Union

from .models import Category
from .exceptions import (
    RuleStoreError, RuleStoreConnectionError, RetryableRuleStoreError, ValidationError
)
from .error_handler import retry_on_error, safe_database_operation


RULES_KEY = "filezen_rules"


def normalize_extension(extension: str) -> str:
    """Lowercase an extension and strip a leading dot."""
    if not isinstance(extension, str):
        raise ValidationError(f"Extension must be a string, got {type(extension).__name__}")
    normalized = extension.strip().lstrip(".").lower()
    if not normalized:
        raise ValidationError("Extension must not be empty")
    return normalized


class RuleStore:
    """Stores user rules as one JSON mapping under a fixed key in SQLite.

    Only explicit user edits are written here; oracle or fallback results are
    never persisted.
    """

    def __init__(self, db_path: Optional[Path] = None, config=None):
        """
        Initialize the rule store.

        Args:
            db_path: Path to SQLite database file. If None, uses config or default location.
            config: Optional application configuration
        """
        from .config import get_config

        app_config = config or get_config()

        if db_path is None:
            db_path = app_config.rules.path

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.timeout = app_config.rules.timeout
        self.logger = logging.getLogger(__name__)
        self._rules: Dict[str, Category] = {}
        self._initialized = False

    def get_connection(self) -> sqlite3.Connection:
        """
        Get a database connection.

        Raises:
            RetryableRuleStoreError: If the database is locked
            RuleStoreConnectionError: If a connection cannot be established
        """
        try:
            conn = sqlite3.connect(self.db_path, timeout=self.timeout, check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            return conn
        except sqlite3.OperationalError as e:
            if "database is locked" in str(e).lower():
                raise RetryableRuleStoreError(f"Rule store is locked: {e}")
            raise RuleStoreConnectionError(f"Cannot connect to rule store: {e}")

    @retry_on_error(max_retries=3, exceptions=(RetryableRuleStoreError,))
    @safe_database_operation("rule store initialization")
    def initialize(self) -> None:
        """Create the key-value table if it does not exist."""
        conn = self.get_connection()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            conn.commit()
        finally:
            conn.close()
        self._initialized = True
        self.logger.debug(f"Rule store initialized at {self.db_path}")

    @retry_on_error(max_retries=3, exceptions=(RetryableRuleStoreError,))
    @safe_database_operation("load rules")
    def load(self) -> Dict[str, Category]:
        """
        Restore the rule mapping from disk.

        Labels outside the closed category set are dropped.

        Returns:
            Copy of the loaded mapping

        Raises:
            RuleStoreError: If the stored value cannot be decoded
        """
        if not self._initialized:
            self.initialize()

        conn = self.get_connection()
        try:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (RULES_KEY,)).fetchone()
        finally:
            conn.close()

        rules: Dict[str, Category] = {}
        if row is not None:
            try:
                stored = json.loads(row[0])
            except json.JSONDecodeError as e:
                raise RuleStoreError(f"Stored rules are not valid JSON: {e}")

            if not isinstance(stored, dict):
                raise RuleStoreError("Stored rules are not a JSON object")

            for extension, label in stored.items():
                category = Category.from_label(label)
                if category is None or not isinstance(extension, str) or not extension:
                    self.logger.warning(f"Dropping invalid stored rule {extension!r} -> {label!r}")
                    continue
                rules[extension.lower()] = category

        self._rules = rules
        self.logger.info(f"Loaded {len(rules)} custom rule(s)")
        return dict(self._rules)

    def get(self) -> Dict[str, Category]:
        """Return a copy of the current extension-to-category mapping."""
        return dict(self._rules)

    def set(self, extension: str, category: Union[Category, str]) -> Dict[str, Category]:
        """
        Create or overwrite the rule for an extension and persist all rules.

        Args:
            extension: File extension, with or without a leading dot
            category: Category or wire label

        Returns:
            Copy of the updated mapping
        """
        extension = normalize_extension(extension)
        resolved = Category.from_label(category)
        if resolved is None:
            raise ValidationError(
                f"Invalid category: {category}. Valid categories: {Category.labels()}"
            )

        updated = dict(self._rules)
        updated[extension] = resolved
        self._persist(updated)
        self._rules = updated
        self.logger.info(f"Rule saved: .{extension} -> {resolved.value}")
        return dict(self._rules)

    def delete(self, extension: str) -> bool:
        """
        Remove the rule for an extension on explicit request.

        Returns:
            True if a rule was removed
        """
        extension = normalize_extension(extension)
        if extension not in self._rules:
            return False

        updated = dict(self._rules)
        del updated[extension]
        self._persist(updated)
        self._rules = updated
        self.logger.info(f"Rule removed: .{extension}")
        return True

    @retry_on_error(max_retries=3, exceptions=(RetryableRuleStoreError,))
    @safe_database_operation("save rules")
    def _persist(self, rules: Dict[str, Category]) -> None:
        if not self._initialized:
            self.initialize()

        payload = json.dumps({ext: category.value for ext, category in sorted(rules.items())})
        conn = self.get_connection()
        try:
            conn.execute(
                "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
                (RULES_KEY, payload)
            )
            conn.commit()
        finally:
            conn.close()

    def health_check(self) -> bool:
        """
        Check that the store can be opened and passes an integrity check.

        Returns:
            True if the store is healthy, False otherwise
        """
        try:
            conn = self.get_connection()
            try:
                integrity_result = conn.execute("PRAGMA integrity_check").fetchone()[0]
            finally:
                conn.close()
        except (sqlite3.Error, RuleStoreError) as e:
            self.logger.error(f"Rule store health check failed: {e}")
            return False

        if integrity_result != "ok":
            self.logger.error(f"Rule store integrity check failed: {integrity_result}")
            return False
        return True
