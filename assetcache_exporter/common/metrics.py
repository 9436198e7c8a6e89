"""Metric registry and exposition for the exporter.

``MetricRegistry`` is a custom ``prometheus_client`` collector: the collection
loop writes the latest observed values into it and every scrape reads a
consistent copy back out as gauge/counter families. Values are not
incremented locally; counters carry the cumulative totals reported by the
cache service itself.

Design notes
- Metric names and kinds are registered once, before collection starts
- Only the latest value per distinct label set is kept (no history)
- One lock guards the sample store between the writer loop and scrapers
- ``ExporterMetrics`` instruments the exporter itself (cycle outcomes,
  durations, extraction failures)
"""

import threading
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

import structlog
from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric

logger = structlog.get_logger("metrics")

LabelKey = Tuple[Tuple[str, str], ...]


class MetricKind(Enum):
    """Exposition type of an exported metric."""
    GAUGE = "gauge"        # Instantaneous value, may go up or down
    COUNTER = "counter"    # Cumulative total since the service started


_FAMILIES = {
    MetricKind.GAUGE: GaugeMetricFamily,
    MetricKind.COUNTER: CounterMetricFamily,
}


def _label_key(labels: Optional[Mapping[str, Any]]) -> LabelKey:
    return tuple(sorted((str(key), str(value)) for key, value in (labels or {}).items()))


class MetricRegistry:
    """Holds registered metric definitions and their current samples.

    Parameters
    - registry: Optional custom ``CollectorRegistry`` (e.g. for testing)

    Definitions are any objects exposing ``name``, ``kind`` (``MetricKind``)
    and ``help`` attributes.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self._definitions: Dict[str, Any] = {}
        self._samples: Dict[str, Dict[LabelKey, float]] = {}
        self._lock = threading.Lock()
        self.registry.register(self)

    def register(self, definition: Any) -> None:
        """Register a metric definition before collection starts."""
        if not isinstance(definition.kind, MetricKind):
            raise ValueError(f"Unsupported metric kind for {definition.name}: {definition.kind!r}")
        with self._lock:
            if definition.name in self._definitions:
                raise ValueError(f"Duplicated metric name: {definition.name}")
            self._definitions[definition.name] = definition
            self._samples[definition.name] = {}
        logger.debug("Registered metric", metric=definition.name, kind=definition.kind.value)

    def update(self, name: str, value: float, labels: Optional[Mapping[str, Any]] = None) -> None:
        """Record the latest value of ``name`` for the given label set.

        Label values are stringified. A later write with the same label set
        replaces the earlier one.
        """
        key = _label_key(labels)
        with self._lock:
            if name not in self._definitions:
                raise KeyError(f"Metric {name!r} is not registered")
            self._samples[name][key] = float(value)

    def definitions(self) -> List[Any]:
        """Registered definitions in registration order."""
        with self._lock:
            return list(self._definitions.values())

    def sample(self, name: str, labels: Optional[Mapping[str, Any]] = None) -> Optional[float]:
        """Return the current value for an exact label set, if any."""
        with self._lock:
            return self._samples.get(name, {}).get(_label_key(labels))

    def samples(self, name: str) -> List[Tuple[Dict[str, str], float]]:
        """Return every current ``(labels, value)`` pair of a metric."""
        with self._lock:
            current = dict(self._samples.get(name, {}))
        return [(dict(key), value) for key, value in sorted(current.items())]

    def collect(self) -> Iterator[Metric]:
        """Yield metric families for the Prometheus exposition layer."""
        with self._lock:
            definitions = list(self._definitions.values())
            current = {name: dict(samples) for name, samples in self._samples.items()}

        for definition in definitions:
            samples = current.get(definition.name)
            if not samples:
                continue
            labelnames = sorted({label for key in samples for label, _ in key})
            family = _FAMILIES[definition.kind](definition.name, definition.help, labels=labelnames)
            for key, value in sorted(samples.items()):
                labels = dict(key)
                family.add_metric([labels.get(label, "") for label in labelnames], value)
            yield family

    def get_metrics(self) -> str:
        """Get metrics in Prometheus exposition format for scraping."""
        return generate_latest(self.registry).decode("utf-8")


class ExporterMetrics:
    """Self-instrumentation of the collection loop.

    Lives on the same ``CollectorRegistry`` as the exported cache metrics so a
    single scrape shows both the cache state and how fresh it is.
    """

    def __init__(self, registry: CollectorRegistry):
        self.collections = Counter(
            'assetcache_exporter_collections_total',
            'Collection cycles partitioned by outcome.',
            ['status'],
            registry=registry
        )

        self.collection_duration = Histogram(
            'assetcache_exporter_collection_duration_seconds',
            'Duration of one fetch/extract/update cycle.',
            registry=registry
        )

        self.extraction_errors = Counter(
            'assetcache_exporter_extraction_errors_total',
            'Metrics skipped because their source fields were missing or invalid.',
            ['metric'],
            registry=registry
        )

        self.last_success = Gauge(
            'assetcache_exporter_last_success_timestamp_seconds',
            'Unix time of the last successful collection cycle.',
            registry=registry
        )

    def record_cycle(self, status: str, duration: float) -> None:
        """Record the outcome of one cycle.

        ``status`` is ``success`` or ``failure``; duration is in seconds.
        """
        self.collections.labels(status=status).inc()
        self.collection_duration.observe(duration)
        if status == "success":
            self.last_success.set_to_current_time()

    def record_extraction_error(self, metric: str) -> None:
        """Record a metric skipped during extraction."""
        self.extraction_errors.labels(metric=metric).inc()


def enable_process_metrics(registry: CollectorRegistry) -> None:
    """Register process and platform collectors (CPU, memory, Python version)."""
    ProcessCollector(registry=registry)
    PlatformCollector(registry=registry)
