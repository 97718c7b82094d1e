"""Bounded in-memory audit log of session events."""

import logging
from collections import deque
from typing import List, Optional, Union

from .models import AuditEntry, Severity
from .logging_config import get_audit_logger


DEFAULT_CAPACITY = 100

_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.SUCCESS: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class AuditLog:
    """Newest-first record of session events, capped at ``capacity`` entries.

    Entries are mirrored to the audit logger. Nothing in the pipeline reads
    the log back.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, logger: Optional[logging.Logger] = None):
        if capacity < 1:
            raise ValueError("Audit log capacity must be at least 1")
        self.capacity = capacity
        self.logger = logger or get_audit_logger()
        self._entries = deque(maxlen=capacity)

    def append(self, severity: Union[Severity, str], message: str) -> AuditEntry:
        """Insert a timestamped entry at the front, evicting the oldest past capacity."""
        if not isinstance(severity, Severity):
            severity = Severity(str(severity).upper())

        entry = AuditEntry(severity=severity, message=message)
        # deque(maxlen) drops from the right when appending on the left
        self._entries.appendleft(entry)
        self.logger.log(_LEVELS[severity], f"[{severity.value}] {message}")
        return entry

    def info(self, message: str) -> AuditEntry:
        return self.append(Severity.INFO, message)

    def success(self, message: str) -> AuditEntry:
        return self.append(Severity.SUCCESS, message)

    def warning(self, message: str) -> AuditEntry:
        return self.append(Severity.WARNING, message)

    def error(self, message: str) -> AuditEntry:
        return self.append(Severity.ERROR, message)

    def entries(self) -> List[AuditEntry]:
        """Entries, newest first."""
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
