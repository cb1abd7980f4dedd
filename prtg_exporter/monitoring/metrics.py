"""
Prometheus metrics registry and scrape endpoint for the PRTG exporter.

Holds the two exported gauge families plus the exporter's own health
metrics, and serves them over HTTP on a dedicated thread.

Usage:
    from prtg_exporter.monitoring.metrics import get_metrics_registry, start_metrics_server

    registry = get_metrics_registry()
    start_metrics_server(port=9705, registry=registry)

    registry.set_sensor_value(sensor, 42.0)
    registry.set_channel_value(sensor, channel, 12.5)
"""
import threading
import time
from typing import Dict, Mapping, Optional, Sequence, Tuple, Union

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
    start_http_server,
)

from prtg_exporter import __version__
from prtg_exporter.common.logging_config import get_logger
from prtg_exporter.prtg.models import Channel, Sensor, channel_labels, sensor_labels

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Exported families
# ---------------------------------------------------------------------------

CHANNEL_FAMILY = "prtg_channel_value"
SENSOR_FAMILY = "prtg_sensor_lastvalue"

CHANNEL_LABELS = ("sensor_id", "device", "sensor", "channel", "unit", "probe", "group")
SENSOR_LABELS = ("sensor_id", "device", "sensor", "probe", "group")

FAMILY_LABELS = {
    CHANNEL_FAMILY: CHANNEL_LABELS,
    SENSOR_FAMILY: SENSOR_LABELS,
}

REFRESH_DURATION_BUCKETS = (0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0)

Labels = Union[Mapping[str, str], Sequence[str]]
SampleKey = Tuple[str, Tuple[str, ...]]


class MetricsRegistry:
    """
    Sole store of exported samples.

    Every instance owns its own ``CollectorRegistry``. Upserts are safe from
    any number of concurrent tasks or threads: the prometheus client locks
    each child metric, and the write bookkeeping has its own lock.

    Samples are last-known-good: nothing is cleared when a value is missing
    or a fetch fails. With ``stale_after_cycles > 0`` samples that were not
    written during that many completed refreshes are evicted.
    """

    def __init__(
        self,
        registry: Optional[CollectorRegistry] = None,
        stale_after_cycles: int = 0,
    ) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self.stale_after_cycles = stale_after_cycles

        self.channel_value = Gauge(
            CHANNEL_FAMILY,
            "PRTG channel last numeric value",
            CHANNEL_LABELS,
            registry=self.registry,
        )
        self.sensor_lastvalue = Gauge(
            SENSOR_FAMILY,
            "PRTG sensor lastvalue (best-effort numeric of the primary channel)",
            SENSOR_LABELS,
            registry=self.registry,
        )
        self._families: Dict[str, Gauge] = {
            CHANNEL_FAMILY: self.channel_value,
            SENSOR_FAMILY: self.sensor_lastvalue,
        }

        # -- exporter health --
        self.refresh_duration = Histogram(
            "prtg_exporter_refresh_duration_seconds",
            "Duration of a full PRTG refresh in seconds",
            buckets=REFRESH_DURATION_BUCKETS,
            registry=self.registry,
        )
        self.refresh_failures = Counter(
            "prtg_exporter_refresh_failures_total",
            "Refreshes aborted because the sensor list could not be fetched",
            registry=self.registry,
        )
        self.channel_fetch_failures = Counter(
            "prtg_exporter_channel_fetch_failures_total",
            "Per-sensor channel fetches that failed",
            registry=self.registry,
        )
        self.api_retries = Counter(
            "prtg_exporter_api_retries_total",
            "PRTG API calls retried after a transport or 5xx error",
            registry=self.registry,
        )
        self.skipped_ticks = Counter(
            "prtg_exporter_skipped_ticks_total",
            "Scheduler ticks skipped because a refresh was still running",
            registry=self.registry,
        )
        self.last_success = Gauge(
            "prtg_exporter_last_refresh_success_timestamp_seconds",
            "Unix time of the last refresh that fetched the sensor list",
            registry=self.registry,
        )
        self.sensors_seen = Gauge(
            "prtg_exporter_sensors",
            "Sensors returned by the last successful refresh",
            registry=self.registry,
        )
        self.build_info = Info(
            "prtg_exporter",
            "PRTG exporter build info",
            registry=self.registry,
        )
        self.build_info.info({"version": __version__})

        self._lock = threading.Lock()
        self._cycle = 0
        self._written: Dict[SampleKey, int] = {}

    # -- Samples ------------------------------------------------------------

    def set(self, family: str, labels: Labels, value: float) -> None:
        """
        Upsert one sample.

        Args:
            family: ``CHANNEL_FAMILY`` or ``SENSOR_FAMILY``
            labels: label values in family order, or a mapping by label name
            value: numeric value
        """
        gauge = self._families[family]
        key = self._label_tuple(family, labels)
        gauge.labels(*key).set(value)
        with self._lock:
            self._written[(family, key)] = self._cycle

    def set_sensor_value(self, sensor: Sensor, value: float) -> None:
        self.set(SENSOR_FAMILY, sensor_labels(sensor), value)

    def set_channel_value(self, sensor: Sensor, channel: Channel, value: float) -> None:
        self.set(CHANNEL_FAMILY, channel_labels(sensor, channel), value)

    def get(self, family: str, labels: Labels) -> Optional[float]:
        """Current value of one sample, or None if it was never set."""
        key = self._label_tuple(family, labels)
        return self.registry.get_sample_value(
            family, dict(zip(FAMILY_LABELS[family], key))
        )

    def sample_count(self, family: str) -> int:
        with self._lock:
            return sum(1 for f, _ in self._written if f == family)

    def snapshot(self) -> bytes:
        """Render every family in the Prometheus text exposition format."""
        return generate_latest(self.registry)

    @staticmethod
    def _label_tuple(family: str, labels: Labels) -> Tuple[str, ...]:
        names = FAMILY_LABELS[family]
        if isinstance(labels, Mapping):
            return tuple(str(labels[name]) for name in names)
        values = tuple(str(v) for v in labels)
        if len(values) != len(names):
            raise ValueError(
                f"{family} expects {len(names)} labels, got {len(values)}"
            )
        return values

    # -- Refresh cycles -----------------------------------------------------

    def begin_cycle(self) -> int:
        """Start a new refresh cycle; later writes are stamped with it."""
        with self._lock:
            self._cycle += 1
            return self._cycle

    def evict_stale(self) -> int:
        """
        Remove samples not written during the last ``stale_after_cycles``
        cycles. No-op when eviction is disabled.

        Returns:
            Number of samples removed
        """
        if self.stale_after_cycles <= 0:
            return 0

        with self._lock:
            cutoff = self._cycle - self.stale_after_cycles
            stale = [key for key, cycle in self._written.items() if cycle <= cutoff]
            for key in stale:
                del self._written[key]

        for family, label_values in stale:
            try:
                self._families[family].remove(*label_values)
            except KeyError:
                pass

        if stale:
            logger.info(f"Evicted {len(stale)} stale samples")
        return len(stale)

    # -- Exporter health ----------------------------------------------------

    def observe_refresh(self, duration_seconds: float, sensor_count: int) -> None:
        """Record a refresh that got past the sensor fetch."""
        self.refresh_duration.observe(duration_seconds)
        self.sensors_seen.set(sensor_count)
        self.last_success.set(time.time())

    def inc_refresh_failures(self) -> None:
        self.refresh_failures.inc()

    def inc_channel_failures(self, count: int = 1) -> None:
        self.channel_fetch_failures.inc(count)

    def inc_api_retries(self, count: int = 1) -> None:
        self.api_retries.inc(count)

    def inc_skipped_ticks(self, count: int = 1) -> None:
        self.skipped_ticks.inc(count)


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------

_metrics_registry: Optional[MetricsRegistry] = None
_registry_lock = threading.Lock()


def get_metrics_registry(stale_after_cycles: int = 0) -> MetricsRegistry:
    """
    Return the process-wide ``MetricsRegistry``.
    Creates one on first call (thread-safe); later arguments are ignored.
    """
    global _metrics_registry
    if _metrics_registry is None:
        with _registry_lock:
            if _metrics_registry is None:
                _metrics_registry = MetricsRegistry(stale_after_cycles=stale_after_cycles)
    return _metrics_registry


def reset_metrics_registry() -> None:
    """Drop the process-wide registry. Used by tests."""
    global _metrics_registry
    with _registry_lock:
        _metrics_registry = None


def start_metrics_server(port: int, registry: MetricsRegistry, addr: str = "0.0.0.0"):
    """
    Serve ``registry`` on ``http://{addr}:{port}/metrics`` from a daemon thread.

    Scrapes only read the registry; they never trigger or wait on a refresh.

    Returns:
        ``(server, thread)`` as returned by ``prometheus_client.start_http_server``

    Raises:
        OSError: If the port cannot be bound
    """
    try:
        server, thread = start_http_server(port, addr=addr, registry=registry.registry)
    except OSError as exc:
        logger.error(f"Failed to start metrics server on {addr}:{port}: {exc}")
        raise
    logger.info(
        f"Prometheus metrics server started on {addr}:{port}  "
        f"→  http://localhost:{port}/metrics"
    )
    return server, thread
