"""
Usage record extraction from session logs.

Parses the unread byte range of one JSONL session file into usage records,
skipping any line that is not a well-formed assistant completion with usage.
"""

import json
import logging
import math
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from usage_dashboard.storage.models import UNKNOWN, UsageRecord, parse_timestamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractionResult:
    """Records found after the start offset and the new offset to persist."""
    records: List[UsageRecord]
    bytes_read: int


def _count(value: Any) -> int:
    """Coerce an optional token count; absent means zero."""
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Invalid token count: {value!r}")
    if not math.isfinite(value):
        raise ValueError(f"Non-finite token count: {value!r}")
    return int(value)


def _amount(value: Any) -> float:
    """Coerce an optional cost amount; absent means zero."""
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Invalid cost amount: {value!r}")
    if not math.isfinite(value):
        raise ValueError(f"Non-finite cost amount: {value!r}")
    return float(value)


def _identity(message: Dict[str, Any], name: str) -> str:
    """Provider or model id; absent or empty means unknown."""
    value = message.get(name)
    if value is None or value == "":
        return UNKNOWN
    if not isinstance(value, str):
        raise ValueError(f"Invalid {name}: {value!r}")
    return value


def parse_log_line(line: Union[str, bytes]) -> Optional[UsageRecord]:
    """Decode one log line into a usage record.

    Returns None for blank lines, lines that are not valid JSON, entries that
    are not assistant messages with usage, and entries with zero usage.

    Raises:
        ValueError: If the entry looks like a usage entry but carries fields
            of the wrong type (callers treat this as a malformed line)
    """
    if not line.strip():
        return None
    entry = json.loads(line)
    if not isinstance(entry, dict) or entry.get("type") != "message":
        return None

    message = entry.get("message")
    if not isinstance(message, dict) or message.get("role") != "assistant":
        return None
    usage = message.get("usage")
    if not isinstance(usage, dict):
        return None

    cost: Dict[str, Any] = usage.get("cost") if isinstance(usage.get("cost"), dict) else {}
    total_tokens = _count(usage.get("totalTokens"))
    total_cost = _amount(cost.get("total"))
    if total_tokens == 0 and total_cost == 0:
        return None

    timestamp = parse_timestamp(entry.get("timestamp"))
    if timestamp is None:
        raise ValueError(f"Missing or invalid timestamp: {entry.get('timestamp')!r}")

    return UsageRecord(
        timestamp=timestamp,
        provider=_identity(message, "provider"),
        model=_identity(message, "model"),
        input_tokens=_count(usage.get("input")),
        output_tokens=_count(usage.get("output")),
        cache_read_tokens=_count(usage.get("cacheRead")),
        cache_write_tokens=_count(usage.get("cacheWrite")),
        total_tokens=total_tokens,
        cost=total_cost,
        cost_input=_amount(cost.get("input")),
        cost_output=_amount(cost.get("output")),
    )


def extract_usage_records(path: str, start_offset: int = 0) -> ExtractionResult:
    """Extract usage records written after `start_offset`.

    Reading starts at the exact byte offset and stops at the file size seen
    when the call began, so bytes appended concurrently are left for the next
    pass. The returned `bytes_read` is that size even when the final line was
    malformed.

    Args:
        path: Path to a JSONL session file
        start_offset: Number of bytes already consumed

    Returns:
        ExtractionResult with records in file order

    Raises:
        OSError: If the file cannot be opened or read
    """
    size = os.stat(path).st_size
    if size <= start_offset:
        return ExtractionResult(records=[], bytes_read=size)

    with open(path, "rb") as f:
        f.seek(start_offset)
        data = f.read(size - start_offset)

    records: List[UsageRecord] = []
    skipped = 0
    for raw in data.split(b"\n"):
        try:
            record = parse_log_line(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            # json.JSONDecodeError is a ValueError
            skipped += 1
            logger.debug("Skipping malformed line in %s: %s", path, e)
            continue
        if record is not None:
            records.append(record)

    if skipped:
        logger.debug("Skipped %d malformed lines in %s", skipped, path)
    return ExtractionResult(records=records, bytes_read=start_offset + len(data))
