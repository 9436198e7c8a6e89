"""Declarative table of the metrics exported for the Content Caching service.

Each ``MetricDefinition`` pairs a metric name, kind and help text with a pure
extractor that turns a ``StatusSnapshot`` into ``(value, labels)``
observations. Extractors never add the ``server_guid`` label; the collection
loop attaches it to every observation.

Fields are required unless listed as optional below; optional fields default
to ``0`` when absent:
- ``ActualCacheUsed``
- the six ``CacheDetails`` groups (``CacheDetails`` itself is required)

A field whose value is ``null`` counts as absent.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Sequence, Tuple

from .common.metrics import MetricKind
from .status import StatusSnapshot

Observation = Tuple[float, Dict[str, str]]
Extractor = Callable[[StatusSnapshot], List[Observation]]

CACHE_GROUPS = (
    ("iCloud", "icloud"),
    ("iOS Software", "ios"),
    ("Mac Software", "macos"),
    ("Apple TV Software", "tvos"),
    ("Books", "books"),
    ("Other", "other"),
)

SERVED_TO = (
    ("TotalBytesReturnedToClients", "clients"),
    ("TotalBytesReturnedToPeers", "peers"),
    ("TotalBytesReturnedToChildren", "children"),
)

STORED_FROM = (
    ("TotalBytesStoredFromOrigin", "origin"),
    ("TotalBytesStoredFromParents", "parents"),
    ("TotalBytesStoredFromPeers", "peers"),
)

_MISSING = object()


class ExtractionError(Exception):
    """A metric could not be extracted from an otherwise valid snapshot."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class MissingFieldError(ExtractionError):
    """A required field is absent from the snapshot."""

    def __init__(self, field: str):
        super().__init__(field, f"Required field {field!r} is missing")


class InvalidFieldError(ExtractionError):
    """A field is present but cannot be converted to a sample value."""

    def __init__(self, field: str, reason: str):
        super().__init__(field, f"Field {field!r} is invalid: {reason}")


@dataclass(frozen=True)
class MetricDefinition:
    """A single exported metric and how to read it from a snapshot."""
    name: str
    kind: MetricKind
    help: str
    extractor: Extractor

    def extract(self, snapshot: StatusSnapshot) -> List[Observation]:
        """Run the extractor; raises ``ExtractionError`` on bad input."""
        return list(self.extractor(snapshot))


def field_value(source: Mapping[str, Any], key: str, default: Any = _MISSING, path: str = "") -> Any:
    """Look up ``key``; absent or ``null`` fields fall back to ``default`` or raise."""
    value = source.get(key)
    if value is not None:
        return value
    if default is _MISSING:
        raise MissingFieldError(path or key)
    return default


def as_number(value: Any, field: str) -> float:
    """Convert a JSON scalar to a sample value; booleans map to 1/0."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    raise InvalidFieldError(field, f"expected a number, got {type(value).__name__}")


_OFFSET_RE = re.compile(r"\s*(?:[Zz]|([+-])(\d{2}):?(\d{2}))$")
_FRACTION_RE = re.compile(r"[.,](\d+)")


def parse_timestamp(text: str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware ``datetime``.

    Accepts everything ``datetime.fromisoformat`` does (basic format, week
    dates, ``+HH`` offsets) plus ``+HHMM`` offsets, comma fractions and a
    space before the offset. Timestamps without an offset are taken as UTC.
    """
    value = text.strip()
    match = _OFFSET_RE.search(value)
    offset = ""
    if match:
        sign, hours, minutes = match.groups()
        offset = f"{sign}{hours}:{minutes}" if sign else "+00:00"
        value = value[:match.start()]
    value = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value)

    parsed = datetime.fromisoformat(value + offset)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def scalar(key: str, default: Any = _MISSING) -> Extractor:
    """Extractor for a single top-level numeric field without labels."""
    def extract(snapshot: StatusSnapshot) -> List[Observation]:
        return [(as_number(field_value(snapshot, key, default), key), {})]
    return extract


def labelled(pairs: Sequence[Tuple[str, str]], label: str) -> Extractor:
    """Extractor for several required fields, one label value each."""
    def extract(snapshot: StatusSnapshot) -> List[Observation]:
        return [
            (as_number(field_value(snapshot, key), key), {label: label_value})
            for key, label_value in pairs
        ]
    return extract


def cache_ok(snapshot: StatusSnapshot) -> List[Observation]:
    return [(1 if field_value(snapshot, "CacheStatus") == "OK" else 0, {})]


def active(snapshot: StatusSnapshot) -> List[Observation]:
    return [(1 if field_value(snapshot, "Active") else 0, {})]


def bytes_used_by_group(snapshot: StatusSnapshot) -> List[Observation]:
    details = field_value(snapshot, "CacheDetails")
    if not isinstance(details, Mapping):
        raise InvalidFieldError("CacheDetails", f"expected an object, got {type(details).__name__}")

    observations = []
    for key, group in CACHE_GROUPS:
        path = f"CacheDetails.{key}"
        observations.append((as_number(field_value(details, key, 0, path), path), {"cache_group": group}))
    return observations


def start_time(snapshot: StatusSnapshot) -> List[Observation]:
    value = field_value(snapshot, "TotalBytesAreSince")
    if not isinstance(value, str):
        raise InvalidFieldError("TotalBytesAreSince", f"expected a timestamp string, got {type(value).__name__}")
    try:
        parsed = parse_timestamp(value)
    except ValueError as e:
        raise InvalidFieldError("TotalBytesAreSince", str(e)) from e
    return [(int(parsed.timestamp()), {})]


CATALOG: Tuple[MetricDefinition, ...] = (
    MetricDefinition(
        "assetcache_bytes_limit", MetricKind.GAUGE,
        "cache size limit",
        scalar("CacheLimit"),
    ),
    MetricDefinition(
        "assetcache_bytes_free", MetricKind.GAUGE,
        "free cache size",
        scalar("CacheFree"),
    ),
    MetricDefinition(
        "assetcache_bytes_used_sum", MetricKind.GAUGE,
        "total used cache size",
        scalar("CacheUsed"),
    ),
    MetricDefinition(
        "assetcache_ok", MetricKind.GAUGE,
        "service status is OK",
        cache_ok,
    ),
    MetricDefinition(
        "assetcache_active", MetricKind.GAUGE,
        "service is active",
        active,
    ),
    MetricDefinition(
        "assetcache_bytes_used", MetricKind.GAUGE,
        "used cache size",
        bytes_used_by_group,
    ),
    MetricDefinition(
        "assetcache_bytes_used_actual", MetricKind.GAUGE,
        "actual cache size",
        scalar("ActualCacheUsed", default=0),
    ),
    MetricDefinition(
        "assetcache_personal_bytes_free", MetricKind.GAUGE,
        "free personal cache size",
        scalar("PersonalCacheFree"),
    ),
    MetricDefinition(
        "assetcache_personal_bytes_limit", MetricKind.GAUGE,
        "personal cache size limit",
        scalar("PersonalCacheLimit"),
    ),
    MetricDefinition(
        "assetcache_personal_bytes_used", MetricKind.GAUGE,
        "used personal cache size",
        scalar("PersonalCacheUsed"),
    ),
    MetricDefinition(
        "assetcache_start_time_seconds", MetricKind.GAUGE,
        "Unix time of when the service was started",
        start_time,
    ),
    MetricDefinition(
        "assetcache_bytes_dropped", MetricKind.COUNTER,
        "number of bytes dropped from cache since the service was started",
        scalar("TotalBytesDropped"),
    ),
    MetricDefinition(
        "assetcache_bytes_imported", MetricKind.COUNTER,
        "number of bytes imported into the cache since the service was started",
        scalar("TotalBytesImported"),
    ),
    MetricDefinition(
        "assetcache_bytes_served", MetricKind.COUNTER,
        "total bytes served since the service was started",
        labelled(SERVED_TO, "to"),
    ),
    MetricDefinition(
        "assetcache_bytes_stored", MetricKind.COUNTER,
        "total bytes stored since the service was started",
        labelled(STORED_FROM, "from"),
    ),
)


def catalog_by_name() -> Dict[str, MetricDefinition]:
    """Catalog definitions keyed by metric name."""
    return {definition.name: definition for definition in CATALOG}
