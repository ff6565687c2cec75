"""
Incremental scanning of the session log directory.

Applies the persisted per-file offsets so that every log line is accounted
for exactly once across refresh cycles.
"""

import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from usage_dashboard.core.extractor import extract_usage_records
from usage_dashboard.core.result import ErrorKind
from usage_dashboard.storage.models import ScanState, UsageRecord

logger = logging.getLogger(__name__)

SESSION_SUFFIX = ".jsonl"


@dataclass(frozen=True)
class SessionScan:
    """Outcome of one scanning pass.

    `records` and `file_offsets` always hold the best state reached; when the
    pass stopped early, `failure` names why and `detail` says where.
    """
    records: List[UsageRecord]
    file_offsets: ScanState
    new_records: int = 0
    failure: Optional[ErrorKind] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None


def list_session_files(sessions_dir: str) -> List[str]:
    """Return session log file names in the directory, sorted by name.

    Raises:
        OSError: If the directory cannot be listed
    """
    return sorted(
        name for name in os.listdir(sessions_dir)
        if name.endswith(SESSION_SUFFIX)
    )


def scan_sessions(
    sessions_dir: str,
    file_offsets: Optional[ScanState] = None,
    records: Optional[List[UsageRecord]] = None,
) -> SessionScan:
    """Scan all session files for data written since the last pass.

    Files whose size is at or below their recorded offset are skipped; this
    includes files that shrank, whose offset is left untouched. A file that
    disappears or cannot be read ends the pass, keeping the progress made on
    earlier files.

    Args:
        sessions_dir: Directory holding `*.jsonl` session logs
        file_offsets: Previously persisted offsets (not modified)
        records: Previously accumulated records (not modified)

    Returns:
        SessionScan with previous plus newly extracted records
    """
    offsets: ScanState = dict(file_offsets or {})
    accumulated: List[UsageRecord] = list(records or [])

    try:
        files = list_session_files(sessions_dir)
    except OSError as e:
        return SessionScan(
            records=accumulated,
            file_offsets=offsets,
            failure=ErrorKind.SOURCE_MISSING,
            detail=f"Cannot list session directory {sessions_dir}: {e}",
        )

    new_records = 0
    for name in files:
        path = os.path.join(sessions_dir, name)
        previous = offsets.get(name, 0)
        try:
            size = os.stat(path).st_size
            if size <= previous:
                if size < previous:
                    logger.warning(
                        "Session file %s shrank from %d to %d bytes; skipping",
                        name, previous, size,
                    )
                continue
            extraction = extract_usage_records(path, previous)
        except OSError as e:
            return SessionScan(
                records=accumulated,
                file_offsets=offsets,
                new_records=new_records,
                failure=ErrorKind.FILE_UNREADABLE,
                detail=f"Cannot read session file {name}: {e}",
            )

        accumulated.extend(extraction.records)
        offsets[name] = max(previous, extraction.bytes_read)
        new_records += len(extraction.records)
        if extraction.records:
            logger.debug("Extracted %d records from %s", len(extraction.records), name)

    return SessionScan(records=accumulated, file_offsets=offsets, new_records=new_records)
