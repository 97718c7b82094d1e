"""Logging setup for FileZen.

Application logs go to stderr and to a rotating ``app.log``. Audit log
entries are also written to a separate rotating ``audit.log`` next to it.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Dict, Optional
from .config import LoggingConfig, get_config


AUDIT_LOGGER_NAME = "filezen.audit"
AUDIT_FORMAT = "%(asctime)s - AUDIT - %(message)s"
AUDIT_MAX_BYTES = 10 * 1024 * 1024
AUDIT_BACKUP_COUNT = 5


class ColoredFormatter(logging.Formatter):
    """Formatter that colours the level name for terminal output."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record):
        color = self.COLORS.get(record.levelname)
        if not color:
            return super().format(record)

        original = record.levelname
        record.levelname = f"{color}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def _rotating_handler(path: Path, max_bytes: int, backup_count: int,
                      fmt: str) -> Optional[logging.Handler]:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            path, maxBytes=max_bytes, backupCount=backup_count
        )
    except OSError as e:
        logging.getLogger(__name__).error(f"Cannot open log file {path}: {e}")
        return None
    handler.setFormatter(logging.Formatter(fmt))
    return handler


class LoggingManager:
    """Installs the root handlers described by a LoggingConfig."""

    def __init__(self, config: Optional[LoggingConfig] = None):
        """
        Configure the root logger.

        Args:
            config: Logging configuration. If None, uses global config.
        """
        self.config = config or get_config().logging
        self.handlers: Dict[str, logging.Handler] = {}
        self._configure_root()

    def _configure_root(self):
        root_logger = logging.getLogger()
        root_logger.handlers.clear()

        level = logging.getLevelName(self.config.level.upper())
        if not isinstance(level, int):
            root_logger.setLevel(logging.INFO)
            root_logger.warning(f"Invalid log level '{self.config.level}', using INFO")
        else:
            root_logger.setLevel(level)

        if self.config.console_enabled:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(ColoredFormatter(self.config.format))
            self._install(root_logger, 'console', console_handler)

        if self.config.file_enabled and self.config.file_path:
            file_handler = _rotating_handler(
                self.config.file_path,
                self.config.file_max_size_mb * 1024 * 1024,
                self.config.file_backup_count,
                self.config.format,
            )
            if file_handler:
                self._install(root_logger, 'file', file_handler)

    def _install(self, logger: logging.Logger, key: str, handler: logging.Handler):
        logger.addHandler(handler)
        self.handlers[key] = handler

    def set_level(self, level: str):
        """Change the root level, e.g. after --log-level on the command line."""
        value = logging.getLevelName(level.upper())
        if not isinstance(value, int):
            logging.getLogger(__name__).error(f"Invalid log level: {level}")
            return
        logging.getLogger().setLevel(value)
        self.config.level = level.upper()

    def create_audit_logger(self, name: str = AUDIT_LOGGER_NAME) -> logging.Logger:
        """
        Return the audit logger, attaching ``audit.log`` on first use.

        Without file logging the audit logger simply propagates to the root.
        """
        audit_logger = logging.getLogger(name)
        audit_logger.setLevel(logging.INFO)

        if 'audit' in self.handlers or not (self.config.file_enabled and self.config.file_path):
            return audit_logger

        handler = _rotating_handler(
            self.config.file_path.parent / 'audit.log',
            AUDIT_MAX_BYTES,
            AUDIT_BACKUP_COUNT,
            AUDIT_FORMAT,
        )
        if handler:
            self._install(audit_logger, 'audit', handler)
            audit_logger.propagate = False

        return audit_logger

    def log_system_info(self):
        import platform

        logger = logging.getLogger(__name__)
        logger.debug(f"Platform: {platform.platform()}, Python {sys.version.split()[0]}")
        logger.debug(f"Log file: {self.config.file_path if self.config.file_enabled else 'disabled'}")


_logging_manager: Optional[LoggingManager] = None


def setup_logging(config: Optional[LoggingConfig] = None) -> LoggingManager:
    """
    Set up global logging, including the audit log file.

    Args:
        config: Optional logging configuration

    Returns:
        LoggingManager instance
    """
    global _logging_manager
    _logging_manager = LoggingManager(config)
    _logging_manager.create_audit_logger()
    _logging_manager.log_system_info()
    return _logging_manager


def get_audit_logger() -> logging.Logger:
    """
    Get the audit logger.

    The audit.log file handler is attached only after setup_logging() has run.
    """
    if _logging_manager is not None:
        return _logging_manager.create_audit_logger()
    return logging.getLogger(AUDIT_LOGGER_NAME)
