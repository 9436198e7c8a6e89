"""Shared test data and doubles."""

import copy
import json
import sys
from typing import Any, Dict, List

# Shape of ``AssetCacheManagerUtil status --json`` -> ``result``
STATUS_RESULT: Dict[str, Any] = {
    "Activated": True,
    "Active": True,
    "ActualCacheUsed": 750,
    "CacheDetails": {
        "iCloud": 100,
        "iOS Software": 200,
        "Mac Software": 300,
        "Apple TV Software": 40,
        "Books": 5,
        "Other": 6,
    },
    "CacheFree": 200,
    "CacheLimit": 1000,
    "CacheStatus": "OK",
    "CacheUsed": 800,
    "PersonalCacheFree": 60,
    "PersonalCacheLimit": 100,
    "PersonalCacheUsed": 40,
    "ServerGUID": "abc",
    "TotalBytesAreSince": "2024-01-01T00:00:00Z",
    "TotalBytesDropped": 11,
    "TotalBytesImported": 22,
    "TotalBytesReturnedToClients": 300,
    "TotalBytesReturnedToPeers": 30,
    "TotalBytesReturnedToChildren": 3,
    "TotalBytesStoredFromOrigin": 400,
    "TotalBytesStoredFromParents": 40,
    "TotalBytesStoredFromPeers": 4,
}


def make_status(**overrides: Any) -> Dict[str, Any]:
    """Return a fresh status ``result`` with fields replaced or removed.

    Passing ``None`` as an override removes the field.
    """
    status = copy.deepcopy(STATUS_RESULT)
    for key, value in overrides.items():
        if value is None:
            status.pop(key, None)
        else:
            status[key] = value
    return status


def python_command(stdout: str = "", stderr: str = "", exit_code: int = 0, delay: float = 0.0) -> List[str]:
    """argv of a throwaway interpreter that behaves like the status tool."""
    script = (
        "import sys, time\n"
        f"time.sleep({delay!r})\n"
        f"sys.stdout.write({stdout!r})\n"
        f"sys.stderr.write({stderr!r})\n"
        f"sys.exit({exit_code!r})\n"
    )
    return [sys.executable, "-c", script]


def status_command(result: Dict[str, Any]) -> List[str]:
    """argv printing ``{"result": result}`` as JSON."""
    return python_command(stdout=json.dumps({"result": result}))


class StubFetcher:
    """Fetcher returning queued responses; exceptions in the queue are raised.

    The last response repeats once the queue is drained.
    """

    def __init__(self, *responses: Any):
        self.responses = list(responses)
        self.calls = 0

    def fetch(self):
        self.calls += 1
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response
