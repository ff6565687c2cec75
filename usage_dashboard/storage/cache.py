"""
JSON cache file holding the dashboard's durable state.

The cache keeps scan offsets, every accumulated usage record, and the last
computed snapshot. It is replaced as a whole after each refresh.
"""

import json
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from usage_dashboard.core.aggregator import Aggregate
from usage_dashboard.core.pricing import PricingTable
from usage_dashboard.core.quota import QuotaReport
from usage_dashboard.core.result import ErrorKind, Result
from usage_dashboard.core.tips import Tip
from .models import ScanState, UsageRecord, parse_timestamp


@dataclass(frozen=True)
class DashboardSnapshot:
    """Everything the serving layer shows, computed by one refresh cycle."""
    aggregate: Aggregate
    tips: List[Tip]
    quotas: Optional[QuotaReport]
    pricing: PricingTable
    updated_at: Optional[datetime]

    @classmethod
    def empty(cls) -> "DashboardSnapshot":
        """Snapshot served before any refresh has completed."""
        return cls(
            aggregate=Aggregate(),
            tips=[],
            quotas=None,
            pricing=PricingTable(),
            updated_at=None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = self.aggregate.to_dict()
        data.update({
            "tips": [tip.to_dict() for tip in self.tips],
            "quotas": self.quotas.to_dict() if self.quotas is not None else None,
            "pricing": self.pricing.to_dict(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DashboardSnapshot":
        quotas = data.get("quotas")
        return cls(
            aggregate=Aggregate.from_dict(data),
            tips=[Tip.from_dict(t) for t in data.get("tips", [])],
            quotas=QuotaReport.from_dict(quotas) if quotas is not None else None,
            pricing=PricingTable.from_dict(data.get("pricing", {})),
            updated_at=parse_timestamp(data.get("updated_at")),
        )


@dataclass(frozen=True)
class CacheSnapshot:
    """Durable state: scan offsets, records and the last dashboard snapshot."""
    file_offsets: ScanState = field(default_factory=dict)
    records: List[UsageRecord] = field(default_factory=list)
    result: Optional[DashboardSnapshot] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_offsets": dict(self.file_offsets),
            "records": [r.to_dict() for r in self.records],
            "result": self.result.to_dict() if self.result is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheSnapshot":
        """Rebuild a cache snapshot.

        Raises:
            ValueError: If the document does not have the expected shape
        """
        if not isinstance(data, dict):
            raise ValueError("Cache document must be an object")
        offsets = data.get("file_offsets") or {}
        if not isinstance(offsets, dict):
            raise ValueError("'file_offsets' must be an object")
        result = data.get("result")
        return cls(
            file_offsets={str(name): int(offset) for name, offset in offsets.items()},
            records=[UsageRecord.from_dict(r) for r in data.get("records") or []],
            result=DashboardSnapshot.from_dict(result) if result is not None else None,
        )


class CacheStore:
    """Whole-file JSON persistence for CacheSnapshot."""

    def __init__(self, path: str):
        """Initialize the store with a cache file path.

        Args:
            path: Path to the JSON cache file
        """
        self.path = Path(path).expanduser()

    def load(self) -> Result:
        """Load the cache.

        Returns:
            Result holding a CacheSnapshot, or CACHE_MISSING / CACHE_CORRUPT
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError:
            return Result.failure(ErrorKind.CACHE_MISSING, f"No cache file at {self.path}")
        except OSError as e:
            return Result.failure(ErrorKind.CACHE_MISSING, f"Cannot read cache {self.path}: {e}")
        except ValueError as e:
            return Result.failure(ErrorKind.CACHE_CORRUPT, f"Invalid JSON in cache {self.path}: {e}")

        try:
            return Result.success(CacheSnapshot.from_dict(raw))
        except (KeyError, TypeError, ValueError) as e:
            return Result.failure(ErrorKind.CACHE_CORRUPT, f"Malformed cache {self.path}: {e}")

    def save(self, snapshot: CacheSnapshot) -> None:
        """Replace the cache file with `snapshot`.

        The document is written to a sibling temporary file and moved over
        the old one, so readers see either the old or the new cache.

        Raises:
            OSError: If the cache cannot be written
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".cache-", suffix=".json", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot.to_dict(), f)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def cached_result(self) -> Optional[DashboardSnapshot]:
        """Last persisted dashboard snapshot, or None when there is none."""
        loaded = self.load()
        if not loaded.ok:
            return None
        return loaded.value.result
