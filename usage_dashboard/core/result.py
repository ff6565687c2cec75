"""
Explicit result types for recoverable failures.

Loaders report what went wrong instead of swallowing it; the refresh
orchestrator decides how each kind of failure degrades.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ErrorKind(Enum):
    """Recoverable failure kinds produced during a refresh cycle."""
    SOURCE_MISSING = "source_missing"
    FILE_UNREADABLE = "file_unreadable"
    CACHE_MISSING = "cache_missing"
    CACHE_CORRUPT = "cache_corrupt"
    CONFIG_MISSING = "config_missing"
    CONFIG_CORRUPT = "config_corrupt"
    QUOTA_UNAVAILABLE = "quota_unavailable"
    QUOTA_TIMEOUT = "quota_timeout"


@dataclass(frozen=True)
class Result:
    """Either a value or an error kind with a human-readable detail."""
    value: Any = None
    error: Optional[ErrorKind] = None
    detail: str = ""

    def __post_init__(self):
        """A failed result never carries a value."""
        if self.error is not None and self.value is not None:
            raise ValueError("a failed Result cannot carry a value")

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any) -> "Result":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ErrorKind, detail: str = "") -> "Result":
        return cls(error=error, detail=detail)

    def unwrap_or(self, default: Any) -> Any:
        """Return the value, or `default` when this result is a failure."""
        return self.value if self.ok else default
