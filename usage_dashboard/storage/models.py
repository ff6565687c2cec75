"""
Data models for storage layer.

Defines the usage record extracted from session logs and the scan offsets
persisted alongside it.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


# Log file name -> number of bytes already consumed
ScanState = Dict[str, int]

UNKNOWN = "unknown"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into an aware datetime.

    Naive timestamps are taken as local time. Returns None for anything that
    is not a parseable string.
    """
    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.astimezone()
    return dt


@dataclass(frozen=True)
class UsageRecord:
    """One billable model invocation taken from a session log line.

    Records are created once per qualifying line and never modified.
    """
    timestamp: datetime
    provider: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0
    total_tokens: int = 0
    cost: float = 0.0
    cost_input: float = 0.0
    cost_output: float = 0.0

    def __post_init__(self):
        """Validate identity fields, token counts and costs."""
        for name in ("provider", "model"):
            if not isinstance(getattr(self, name), str):
                raise ValueError(f"{name} must be a string")
        for name in ("input_tokens", "output_tokens", "cache_read_tokens",
                     "cache_write_tokens", "total_tokens"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")
        for name in ("cost", "cost_input", "cost_output"):
            if not math.isfinite(getattr(self, name)):
                raise ValueError(f"{name} must be finite")
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")

    @property
    def key(self) -> str:
        """Model identity used for per-model aggregation and pricing."""
        return f"{self.provider}/{self.model}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "provider": self.provider,
            "model": self.model,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cache_read_tokens": self.cache_read_tokens,
            "cache_write_tokens": self.cache_write_tokens,
            "total_tokens": self.total_tokens,
            "cost": self.cost,
            "cost_input": self.cost_input,
            "cost_output": self.cost_output,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UsageRecord":
        """Rebuild a record persisted by `to_dict`.

        Raises:
            ValueError: If the timestamp is missing or unparseable
        """
        timestamp = parse_timestamp(data.get("timestamp"))
        if timestamp is None:
            raise ValueError(f"Invalid record timestamp: {data.get('timestamp')!r}")
        return cls(
            timestamp=timestamp,
            provider=data.get("provider") or UNKNOWN,
            model=data.get("model") or UNKNOWN,
            input_tokens=int(data.get("input_tokens", 0)),
            output_tokens=int(data.get("output_tokens", 0)),
            cache_read_tokens=int(data.get("cache_read_tokens", 0)),
            cache_write_tokens=int(data.get("cache_write_tokens", 0)),
            total_tokens=int(data.get("total_tokens", 0)),
            cost=float(data.get("cost", 0.0)),
            cost_input=float(data.get("cost_input", 0.0)),
            cost_output=float(data.get("cost_output", 0.0)),
        )
