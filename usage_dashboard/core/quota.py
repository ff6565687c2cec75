"""
Provider quota report from the agent runtime's command line.

The command is tried with `--json` first and then without it; when both
fail the caller gets an explicit failure instead of an exception.
"""

import json
import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .result import ErrorKind, Result

logger = logging.getLogger(__name__)

DEFAULT_QUOTA_TIMEOUT = 15.0
# Common install locations for the runtime CLI when run from a service
EXTRA_PATH = ["/opt/homebrew/bin", "/usr/local/bin", "/usr/bin", "/bin"]


@dataclass(frozen=True)
class QuotaReport:
    """Quota information as reported by the runtime, or an unavailable marker."""
    parsed: bool
    data: Any = None
    raw: Optional[str] = None
    error: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.error is None

    @classmethod
    def unavailable(cls, message: str = "Could not fetch provider quotas") -> "QuotaReport":
        return cls(parsed=False, error=message)

    def to_dict(self) -> Dict[str, Any]:
        return {"parsed": self.parsed, "data": self.data, "raw": self.raw, "error": self.error}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuotaReport":
        return cls(
            parsed=bool(data.get("parsed", False)),
            data=data.get("data"),
            raw=data.get("raw"),
            error=data.get("error"),
        )


def _command_env() -> Dict[str, str]:
    env = dict(os.environ)
    paths = env.get("PATH", "").split(os.pathsep) if env.get("PATH") else []
    env["PATH"] = os.pathsep.join(paths + [p for p in EXTRA_PATH if p not in paths])
    return env


def _run(command: List[str], timeout: float) -> str:
    """Run a command and return stdout.

    Raises:
        OSError: If the executable cannot be started
        subprocess.TimeoutExpired: If it runs past `timeout`
        subprocess.CalledProcessError: If it exits non-zero
    """
    completed = subprocess.run(
        command,
        capture_output=True,
        text=True,
        errors="replace",
        timeout=timeout,
        env=_command_env(),
        check=True,
    )
    return completed.stdout


def fetch_provider_quotas(command: Sequence[str], timeout: float = DEFAULT_QUOTA_TIMEOUT) -> Result:
    """Fetch the provider quota report.

    Args:
        command: Base command, e.g. `["openclaw", "status", "--usage"]`
        timeout: Seconds allowed for each attempt

    Returns:
        Result holding a QuotaReport, or QUOTA_UNAVAILABLE / QUOTA_TIMEOUT
    """
    if not command:
        return Result.failure(ErrorKind.QUOTA_UNAVAILABLE, "No quota command configured")
    base = list(command)

    error: ErrorKind = ErrorKind.QUOTA_UNAVAILABLE
    try:
        output = _run(base + ["--json"], timeout)
        return Result.success(QuotaReport(parsed=True, data=json.loads(output)))
    except subprocess.TimeoutExpired:
        logger.debug("Quota command timed out after %ss (json)", timeout)
        error = ErrorKind.QUOTA_TIMEOUT
    except (OSError, subprocess.CalledProcessError, ValueError) as e:
        logger.debug("Structured quota report failed: %s", e)

    try:
        output = _run(base, timeout)
    except subprocess.TimeoutExpired:
        return Result.failure(ErrorKind.QUOTA_TIMEOUT, f"Quota command timed out after {timeout}s")
    except (OSError, subprocess.CalledProcessError, ValueError) as e:
        return Result.failure(error, f"Quota command failed: {e}")

    if not output.strip():
        return Result.failure(error, "Quota command produced no output")
    return Result.success(QuotaReport(parsed=False, raw=output))
