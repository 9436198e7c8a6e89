"""Collection loop: fetch, extract, update, sleep, repeat.

One ``CollectionLoop`` runs per process on the main thread. A failed fetch
skips the rest of the cycle; a failed extraction skips only that metric. The
sleep interval is the same after failures, so retries follow the normal
cadence. ``stop()`` ends the loop at the next state transition.
"""

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import structlog

from .catalog import CATALOG, ExtractionError, MetricDefinition, Observation
from .common.metrics import ExporterMetrics, MetricRegistry
from .status import FetchError, StatusFetcher, StatusSnapshot

logger = structlog.get_logger("collection_loop")

DEFAULT_INTERVAL = 5.0
SERVER_GUID_LABEL = "server_guid"


class LoopState(Enum):
    """Collection loop states."""
    IDLE = "idle"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    UPDATING = "updating"
    SLEEPING = "sleeping"
    STOPPED = "stopped"


@dataclass
class CycleReport:
    """Outcome of one collection cycle."""
    ok: bool
    error: Optional[str] = None
    updated: List[str] = field(default_factory=list)
    skipped: Dict[str, str] = field(default_factory=dict)
    duration: float = 0.0


class CollectionLoop:
    """Periodically copies status fields into the metric registry.

    Parameters
    - fetcher: Anything with a ``fetch() -> StatusSnapshot`` method
    - registry: Target ``MetricRegistry``; catalog metrics are registered on it
    - catalog: Metric definitions to extract each cycle
    - interval: Seconds to sleep between cycles (also after failures)
    - metrics: Optional ``ExporterMetrics`` for self-instrumentation
    - sleep: Override for the sleep step (tests); defaults to an interruptible wait
    """

    def __init__(
        self,
        fetcher: StatusFetcher,
        registry: MetricRegistry,
        catalog: Sequence[MetricDefinition] = CATALOG,
        interval: float = DEFAULT_INTERVAL,
        metrics: Optional[ExporterMetrics] = None,
        sleep: Optional[Callable[[float], Any]] = None
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.fetcher = fetcher
        self.registry = registry
        self.catalog = tuple(catalog)
        self.interval = interval
        self.metrics = metrics
        self.state = LoopState.IDLE
        self.cycles = 0
        self._stop_event = threading.Event()
        self._sleep = sleep or self._stop_event.wait

        for definition in self.catalog:
            registry.register(definition)

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Ask the loop to exit; interrupts a pending sleep."""
        if not self._stop_event.is_set():
            logger.info("Stopping collection loop", cycles=self.cycles)
        self._stop_event.set()

    def run_forever(self) -> None:
        """Run cycles until ``stop()`` is called."""
        logger.info(
            "Collection loop started",
            interval=self.interval,
            metrics=len(self.catalog)
        )
        while not self.stopped:
            self.run_cycle()
            if self.stopped:
                break
            self.state = LoopState.SLEEPING
            self._sleep(self.interval)
        self.state = LoopState.STOPPED
        logger.info("Collection loop stopped", cycles=self.cycles)

    def run_cycle(self) -> CycleReport:
        """Fetch once and push every extractable metric into the registry."""
        start_time = time.perf_counter()
        self.cycles += 1
        report = self._collect()
        report.duration = time.perf_counter() - start_time
        self.state = LoopState.IDLE

        if self.metrics is not None:
            self.metrics.record_cycle("success" if report.ok else "failure", report.duration)
            for name in report.skipped:
                self.metrics.record_extraction_error(name)

        logger.debug(
            "Collection cycle completed",
            ok=report.ok,
            updated=len(report.updated),
            skipped=len(report.skipped),
            duration_ms=report.duration * 1000
        )
        return report

    def _collect(self) -> CycleReport:
        self.state = LoopState.FETCHING
        try:
            snapshot = self.fetcher.fetch()
        except FetchError as e:
            logger.error("Status fetch failed", error=str(e), error_type=type(e).__name__)
            return CycleReport(ok=False, error=str(e))

        server_guid = snapshot.get("ServerGUID")
        if server_guid is None or isinstance(server_guid, (Mapping, tuple)):
            logger.error("Status has no usable ServerGUID; skipping cycle")
            return CycleReport(ok=False, error="ServerGUID is missing or not a scalar")

        self.state = LoopState.EXTRACTING
        report = CycleReport(ok=True)
        extracted: List[Tuple[MetricDefinition, List[Observation]]] = []
        for definition in self.catalog:
            try:
                observations = definition.extract(snapshot)
            except ExtractionError as e:
                logger.warning("Skipping metric for this cycle", metric=definition.name, error=str(e))
                report.skipped[definition.name] = str(e)
                continue
            extracted.append((definition, observations))

        self.state = LoopState.UPDATING
        for definition, observations in extracted:
            self._update(definition, observations, str(server_guid))
            report.updated.append(definition.name)
        return report

    def _update(self, definition: MetricDefinition, observations: List[Observation], server_guid: str) -> None:
        for value, labels in observations:
            self.registry.update(definition.name, value, {**labels, SERVER_GUID_LABEL: server_guid})


def collect_once(fetcher: StatusFetcher, registry: MetricRegistry, **kwargs: Any) -> CycleReport:
    """Register the catalog on ``registry`` and run a single cycle."""
    return CollectionLoop(fetcher, registry, **kwargs).run_cycle()
