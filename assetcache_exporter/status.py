"""Status source for the Content Caching service.

``StatusFetcher`` runs ``AssetCacheManagerUtil status --json`` and returns the
decoded ``result`` object as a read-only ``StatusSnapshot``. Failures are
raised as ``FetchError`` subclasses; retrying is left to the caller.
"""

import json
import subprocess
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence

import structlog

logger = structlog.get_logger("status")

DEFAULT_STATUS_COMMAND = ("AssetCacheManagerUtil", "status", "--json")

StatusSnapshot = Mapping[str, Any]


class FetchError(Exception):
    """Status could not be obtained for this cycle."""
    pass


class ProcessError(FetchError):
    """Status tool could not be launched, timed out, or exited non-zero."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class DecodeError(FetchError):
    """Status tool output is not valid JSON."""
    pass


class SchemaError(FetchError):
    """Decoded output lacks a ``result`` object."""
    pass


def freeze(value: Any) -> Any:
    """Return a read-only view of decoded JSON (mappings and lists, recursively)."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, list):
        return tuple(freeze(item) for item in value)
    return value


class StatusFetcher:
    """Invokes the status tool and decodes its structured output.

    Parameters
    - command: argv of the status tool (defaults to ``AssetCacheManagerUtil status --json``)
    - timeout: Seconds to wait for the tool before giving up (``None`` waits forever)
    """

    def __init__(
        self,
        command: Sequence[str] = DEFAULT_STATUS_COMMAND,
        timeout: Optional[float] = 30.0
    ):
        if not command:
            raise ValueError("command must not be empty")
        self.command = list(command)
        self.timeout = timeout

    def fetch(self) -> StatusSnapshot:
        """Run the status tool once and return its ``result`` object."""
        stdout = self._run()
        return self.parse(stdout)

    def _run(self) -> str:
        try:
            completed = subprocess.run(
                self.command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False
            )
        except subprocess.TimeoutExpired as e:
            raise ProcessError(f"{self.command[0]} timed out after {self.timeout}s") from e
        except OSError as e:
            raise ProcessError(f"{self.command[0]} could not be started: {e}") from e

        if completed.returncode != 0:
            stderr = (completed.stderr or "").strip()
            logger.warning(
                "Status tool exited with an error",
                command=self.command[0],
                returncode=completed.returncode,
                stderr=stderr
            )
            raise ProcessError(
                f"{self.command[0]} exited with status {completed.returncode}",
                returncode=completed.returncode,
                stderr=stderr
            )

        return completed.stdout

    @staticmethod
    def parse(stdout: str) -> StatusSnapshot:
        """Decode status tool output into a ``StatusSnapshot``."""
        try:
            document = json.loads(stdout)
        except ValueError as e:
            raise DecodeError(f"Status output is not valid JSON: {e}") from e

        if not isinstance(document, dict):
            raise SchemaError(f"Status output must be a JSON object, got {type(document).__name__}")
        if "result" not in document:
            raise SchemaError("Status output has no 'result' key")

        result = document["result"]
        if not isinstance(result, dict):
            raise SchemaError(f"'result' must be a JSON object, got {type(result).__name__}")

        return freeze(result)
