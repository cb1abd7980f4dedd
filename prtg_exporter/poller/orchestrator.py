"""
Refresh orchestration: one sensor listing, then a bounded fan-out of
per-sensor channel fetches, with every result written into the registry.
"""
import asyncio
import time
from dataclasses import dataclass, field
from typing import List

from prtg_exporter.common.correlation import RefreshContext
from prtg_exporter.common.exceptions import SensorFetchError
from prtg_exporter.common.logging_config import get_logger
from prtg_exporter.monitoring.metrics import MetricsRegistry
from prtg_exporter.prtg.fetchers import ChannelFetcher, SensorFetcher
from prtg_exporter.prtg.models import Sensor

logger = get_logger(__name__)

MAX_CONCURRENT_CHANNEL_CALLS = 6


@dataclass
class RefreshResult:
    """Outcome of one refresh pass."""
    refresh_id: str
    sensors: int = 0
    sensor_samples: int = 0
    channel_samples: int = 0
    failed_sensors: List[int] = field(default_factory=list)
    duration_seconds: float = 0.0


class RefreshOrchestrator:
    """
    Drives one refresh pass.

    The sensor listing strictly precedes every channel fetch. At most
    ``max_concurrency`` channel fetches are in flight at once. A failing
    channel fetch is logged and counted without affecting other sensors;
    a failing sensor listing aborts the whole pass with ``SensorFetchError``.

    Cancelling the task running ``refresh()`` cancels every outstanding
    channel fetch and retry wait.
    """

    def __init__(
        self,
        sensor_fetcher: SensorFetcher,
        channel_fetcher: ChannelFetcher,
        registry: MetricsRegistry,
        max_concurrency: int = MAX_CONCURRENT_CHANNEL_CALLS,
    ):
        self.sensor_fetcher = sensor_fetcher
        self.channel_fetcher = channel_fetcher
        self.registry = registry
        self.max_concurrency = max_concurrency

    async def refresh(self) -> RefreshResult:
        """
        Run one refresh pass.

        Returns:
            RefreshResult once every channel fetch has finished

        Raises:
            SensorFetchError: The sensor listing failed; nothing was fetched
        """
        with RefreshContext() as ctx:
            start = time.monotonic()
            result = RefreshResult(refresh_id=ctx.refresh_id)

            try:
                sensors = await self.sensor_fetcher.fetch_sensors()
            except Exception as e:
                self.registry.inc_refresh_failures()
                raise SensorFetchError(f"Failed to fetch sensor list: {e}") from e

            # Aborted refreshes do not count towards stale eviction
            self.registry.begin_cycle()

            result.sensors = len(sensors)
            for sensor in sensors:
                value = sensor.value
                if value is not None:
                    self.registry.set_sensor_value(sensor, value)
                    result.sensor_samples += 1

            semaphore = asyncio.Semaphore(self.max_concurrency)
            await asyncio.gather(
                *(self._refresh_channels(sensor, semaphore, result) for sensor in sensors)
            )

            result.duration_seconds = time.monotonic() - start
            self.registry.observe_refresh(result.duration_seconds, result.sensors)
            self.registry.evict_stale()

            logger.info(
                f"Refresh complete: {result.sensors} sensors, "
                f"{result.sensor_samples} sensor samples, "
                f"{result.channel_samples} channel samples, "
                f"{len(result.failed_sensors)} failed "
                f"({result.duration_seconds:.2f}s)"
            )
            return result

    async def _refresh_channels(
        self,
        sensor: Sensor,
        semaphore: asyncio.Semaphore,
        result: RefreshResult,
    ) -> None:
        try:
            async with semaphore:
                channels = await self.channel_fetcher.fetch_channels(sensor.objid)

            # No await below: a sensor's channels become visible together
            written = 0
            for channel in channels:
                value = channel.value
                if value is not None:
                    self.registry.set_channel_value(sensor, channel, value)
                    written += 1
            result.channel_samples += written
        except Exception as e:
            result.failed_sensors.append(sensor.objid)
            self.registry.inc_channel_failures()
            logger.warning(
                f"Error fetching channels for sensor {sensor.objid}: {e}",
                extra={"sensor_id": sensor.objid},
            )
