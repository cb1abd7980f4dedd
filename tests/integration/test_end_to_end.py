"""
Integration tests for the exporter pipeline.
Tests the complete flow: PRTG table API -> fetchers -> orchestrator -> registry
-> exposition text, plus the scheduler driving repeated refreshes.

PRTG is served in-process through httpx.MockTransport; no network is used.
"""
import asyncio

import pytest
from prometheus_client.parser import text_string_to_metric_families

from prtg_exporter.monitoring.metrics import CHANNEL_FAMILY, SENSOR_FAMILY
from prtg_exporter.poller.orchestrator import RefreshOrchestrator
from prtg_exporter.poller.scheduler import RefreshScheduler
from prtg_exporter.prtg.fetchers import ChannelFetcher, SensorFetcher
from tests.fakes import channel_row


SENSORS = [
    {
        "objid": 100, "device": "web-01", "probe": "Local Probe", "group": "Web",
        "sensor": "CPU Load", "lastvalue": "23 %", "lastvalue_": "23",
    },
    {
        "objid": 200, "device": "db-01", "probe": "Remote Probe", "group": "Databases",
        "sensor": "Disk Free", "lastvalue": "1,234.5 MB", "lastvalue_": "",
    },
]

CHANNELS = {
    100: [
        channel_row(0, "Total", "23 %", raw=23.0, unit="%"),
        channel_row(1, "Core 0", "19 %", raw=19, unit="%"),
    ],
    200: [
        channel_row(0, "Free Bytes", "1,234.5 MB", raw="", unit="MB"),
        channel_row(1, "Free Space", "41 %", raw=41.2, unit="%"),
    ],
}


async def _wait_until(predicate, timeout: float = 5.0) -> None:
    async def poll():
        while not predicate():
            await asyncio.sleep(0.005)
    await asyncio.wait_for(poll(), timeout=timeout)


def _samples(snapshot: bytes, family: str):
    for metric in text_string_to_metric_families(snapshot.decode("utf-8")):
        if metric.name == family:
            return metric.samples
    return []


class TestRefreshPipeline:
    """End-to-end refresh against an in-memory PRTG"""

    @pytest.fixture
    def orchestrator(self, fake_prtg, prtg_client, registry):
        fake_prtg.sensors = SENSORS
        fake_prtg.channels = CHANNELS
        return RefreshOrchestrator(
            SensorFetcher(prtg_client), ChannelFetcher(prtg_client), registry
        )

    @pytest.mark.asyncio
    async def test_two_sensors_four_channels(self, orchestrator, registry):
        result = await orchestrator.refresh()

        assert result.sensors == 2
        assert result.failed_sensors == []
        assert registry.sample_count(SENSOR_FAMILY) == 2
        assert registry.sample_count(CHANNEL_FAMILY) == 4

    @pytest.mark.asyncio
    async def test_exposition_labels_and_values(self, orchestrator, registry):
        await orchestrator.refresh()
        snapshot = registry.snapshot()

        sensors = {s.labels["sensor_id"]: s for s in _samples(snapshot, SENSOR_FAMILY)}
        assert sensors["100"].value == 23.0
        assert sensors["100"].labels == {
            "sensor_id": "100", "device": "web-01", "sensor": "CPU Load",
            "probe": "Local Probe", "group": "Web",
        }
        assert sensors["200"].value == 1234.5
        assert sensors["200"].labels["group"] == "Databases"

        channels = {
            (s.labels["sensor_id"], s.labels["channel"]): s
            for s in _samples(snapshot, CHANNEL_FAMILY)
        }
        assert set(channels) == {
            ("100", "Total"), ("100", "Core 0"), ("200", "Free Bytes"), ("200", "Free Space"),
        }
        assert channels[("100", "Core 0")].value == 19.0
        assert channels[("200", "Free Bytes")].value == 1234.5
        assert channels[("200", "Free Space")].value == 41.2
        assert channels[("200", "Free Space")].labels["unit"] == "%"
        assert channels[("200", "Free Space")].labels["device"] == "db-01"

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_other_sensors(self, orchestrator, registry, fake_prtg):
        fake_prtg.failing_channels.add(100)

        result = await orchestrator.refresh()

        assert result.failed_sensors == [100]
        assert registry.sample_count(SENSOR_FAMILY) == 2
        assert registry.sample_count(CHANNEL_FAMILY) == 2
        # Four attempts for the failing sensor, one for the other
        assert len(fake_prtg.channel_requests()) == 5


class TestScheduledRefresh:
    """Scheduler driving the real orchestrator"""

    @pytest.mark.asyncio
    async def test_values_track_prtg_between_refreshes(self, fake_prtg, prtg_client, registry):
        fake_prtg.sensors = SENSORS
        fake_prtg.channels = {100: [channel_row(0, "Total", raw=10)]}
        orchestrator = RefreshOrchestrator(
            SensorFetcher(prtg_client), ChannelFetcher(prtg_client), registry
        )
        scheduler = RefreshScheduler(orchestrator, interval_seconds=0.02)
        labels = {
            "sensor_id": "100", "device": "web-01", "sensor": "CPU Load",
            "channel": "Total", "unit": "", "probe": "Local Probe", "group": "Web",
        }

        task = asyncio.create_task(scheduler.run())
        await _wait_until(lambda: registry.get(CHANNEL_FAMILY, labels) == 10.0)

        fake_prtg.channels = {100: [channel_row(0, "Total", raw=11)]}
        await _wait_until(lambda: registry.get(CHANNEL_FAMILY, labels) == 11.0)

        scheduler.stop()
        await asyncio.wait_for(task, timeout=5)
        assert scheduler.refreshes_completed >= 1
        assert scheduler.refreshes_failed == 0
