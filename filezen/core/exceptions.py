"""Custom exceptions for FileZen."""


class FileZenError(Exception):
    """Base exception for FileZen errors."""
    pass


class AccessDeniedError(FileZenError):
    """Exception raised when a root directory cannot be acquired."""
    pass


class TraversalError(FileZenError):
    """Exception raised when a directory read fails during a scan."""
    pass


class OracleError(FileZenError):
    """Exception for an unusable categorization oracle response."""
    pass


class ExecutionError(FileZenError):
    """Aggregate failure of a move batch."""

    def __init__(self, message, attempted=0, succeeded=0, failed=0):
        super().__init__(message)
        self.attempted = attempted
        self.succeeded = succeeded
        self.failed = failed

    @classmethod
    def from_summary(cls, summary):
        """Build the error from an ExecutionSummary."""
        message = (
            f"Organization partially failed: {summary.failed} of "
            f"{summary.attempted} moves failed"
        )
        return cls(message, summary.attempted, summary.succeeded, summary.failed)


class RuleStoreError(FileZenError):
    """Exception for rule store errors."""
    pass


class ValidationError(FileZenError):
    """Exception for data validation errors."""
    pass


class ConfigurationError(FileZenError):
    """Exception for configuration related errors."""
    pass


class RuleStoreConnectionError(RuleStoreError):
    """Exception for rule store connection errors."""
    pass


class RetryableError(FileZenError):
    """Base class for errors that can be retried."""

    def __init__(self, message, retry_count=0, max_retries=3):
        super().__init__(message)
        self.retry_count = retry_count
        self.max_retries = max_retries

    @property
    def can_retry(self):
        """Check if this error can be retried."""
        return self.retry_count < self.max_retries

    def increment_retry(self):
        """Increment retry count."""
        self.retry_count += 1
        return self


class RetryableRuleStoreError(RuleStoreError, RetryableError):
    """Rule store error that can be retried."""
    pass
