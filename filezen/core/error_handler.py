"""Error translation, retry and circuit breaking for FileZen."""

import errno
import time
import logging
import sqlite3
from collections import Counter
from pathlib import Path
from typing import Callable, Any, Optional, Union, List
from functools import wraps

from .exceptions import (
    FileZenError, AccessDeniedError, TraversalError, RuleStoreError,
    RetryableError, RetryableRuleStoreError
)


logger = logging.getLogger(__name__)

# sqlite messages that clear up on their own after a short wait
TRANSIENT_SQLITE_MESSAGES = ("database is locked", "database table is locked", "disk i/o error")


def retry_on_error(
    max_retries: int = 3,
    delay: float = 1.0,
    backoff_factor: float = 2.0,
    exceptions: tuple = (RetryableError,)
):
    """
    Retry the decorated call with exponential backoff.

    Only ``exceptions`` trigger a retry; anything else propagates at once.

    Args:
        max_retries: Retries after the first attempt
        delay: Seconds to wait before the first retry
        backoff_factor: Multiplier applied to the wait after each retry
        exceptions: Exception types worth retrying
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            wait = delay
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    attempt += 1
                    if attempt > max_retries:
                        logger.error(f"{func.__name__} gave up after {max_retries} retries: {e}")
                        raise

                    logger.warning(f"{func.__name__} failed, retry {attempt}/{max_retries} in {wait:.1f}s: {e}")
                    if isinstance(e, RetryableError):
                        e.increment_retry()
                    time.sleep(wait)
                    wait *= backoff_factor

        return wrapper
    return decorator


class ErrorHandler:
    """Maps OS and SQLite failures onto the FileZen error hierarchy."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def handle_traversal_error(self, error: Exception, dir_path: Union[str, Path]) -> None:
        """
        Raise the TraversalError for a failed directory listing or stat.

        The scan is all-or-nothing, so this never returns.
        """
        dir_path = Path(dir_path)
        code = getattr(error, "errno", None)

        if code in (errno.EACCES, errno.EPERM):
            reason = "permission denied"
        elif code == errno.ENOENT:
            reason = "entry disappeared during the scan"
        else:
            reason = str(error)

        self.logger.error(f"Traversal stopped at {dir_path}: {reason}")
        raise TraversalError(f"Cannot read {dir_path}: {reason}") from error

    def handle_access_error(self, error: Exception, root: Union[str, Path]) -> None:
        """Raise the AccessDeniedError for a root that could not be acquired."""
        self.logger.warning(f"Access to {root} rejected: {error}")
        raise AccessDeniedError(f"Access denied: {root}") from error

    def handle_rule_store_error(self, error: Exception, operation: str = "unknown") -> None:
        """
        Re-raise a rule store failure as RuleStoreError.

        Lock contention and I/O hiccups become RetryableRuleStoreError so that
        ``retry_on_error`` can try again.
        """
        if isinstance(error, RuleStoreError):
            raise error

        message = str(error).lower()
        if isinstance(error, sqlite3.OperationalError) and any(
            transient in message for transient in TRANSIENT_SQLITE_MESSAGES
        ):
            self.logger.warning(f"Transient rule store failure during {operation}: {error}")
            raise RetryableRuleStoreError(f"Rule store busy during {operation}: {error}") from error

        self.logger.error(f"Rule store failure during {operation}: {error}")
        raise RuleStoreError(f"Rule store error during {operation}: {error}") from error

    def log_error_summary(self, errors: List[Exception], operation: str = "operation"):
        """Log how many errors of each type a batch produced, with a few examples."""
        if not errors:
            return

        counts = Counter(type(error).__name__ for error in errors)
        breakdown = ", ".join(f"{name} x{count}" for name, count in counts.most_common())
        self.logger.warning(f"{len(errors)} error(s) during {operation}: {breakdown}")

        for message in list(dict.fromkeys(str(error) for error in errors))[:5]:
            self.logger.warning(f"  {message}")


def safe_database_operation(operation_name: str = "database operation"):
    """Translate SQLite errors raised by a rule store method."""
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except (sqlite3.Error, RuleStoreError) as e:
                ErrorHandler().handle_rule_store_error(e, operation_name)

        return wrapper
    return decorator


class CircuitBreaker:
    """
    Stops calling a failing service until a recovery window has passed.

    After ``failure_threshold`` consecutive failures the breaker opens and
    calls fail fast with FileZenError. Once ``recovery_timeout`` seconds have
    passed a single trial call is let through; success closes the breaker.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: float = 60.0):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.opened_at: Optional[float] = None
        self.state = self.CLOSED

    def call(self, func: Callable, *args, **kwargs) -> Any:
        if self.state == self.OPEN:
            if time.time() - self.opened_at < self.recovery_timeout:
                raise FileZenError("Circuit breaker is open")
            self.state = self.HALF_OPEN
            logger.info("Circuit breaker half-open, sending a trial request")

        try:
            result = func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise

        self.record_success()
        return result

    def record_success(self) -> None:
        if self.state != self.CLOSED:
            logger.info("Circuit breaker closed")
        self.failure_count = 0
        self.opened_at = None
        self.state = self.CLOSED

    def record_failure(self) -> None:
        self.failure_count += 1
        if self.state == self.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self.state = self.OPEN
            self.opened_at = time.time()
            logger.warning(
                f"Circuit breaker open after {self.failure_count} failure(s); "
                f"retrying in {self.recovery_timeout:.0f}s"
            )
