"""
Unit tests for the sensor and channel fetchers.
"""
import pytest

from prtg_exporter.common.exceptions import PrtgApiError, ResponseParseError
from prtg_exporter.prtg.fetchers import (
    CHANNEL_COLUMNS,
    SENSOR_COLUMNS,
    ChannelFetcher,
    SensorFetcher,
)
from tests.fakes import channel_row, sensor_row


class TestSensorFetcher:
    """Test SensorFetcher.fetch_sensors"""

    @pytest.mark.asyncio
    async def test_query_parameters(self, fake_prtg, prtg_client):
        await SensorFetcher(prtg_client).fetch_sensors()

        params = fake_prtg.requests[0].url.params
        assert params["content"] == "sensors"
        assert params["columns"] == SENSOR_COLUMNS
        assert params["count"] == "10000"
        assert params["username"] == "prometheus"
        assert params["passhash"] == "s3cr3t"

    @pytest.mark.asyncio
    async def test_parses_rows(self, fake_prtg, prtg_client):
        fake_prtg.sensors = [sensor_row(100, "5 %"), sensor_row(200, "Down")]

        sensors = await SensorFetcher(prtg_client).fetch_sensors()

        assert [s.objid for s in sensors] == [100, 200]
        assert sensors[0].device == "device-100"
        assert sensors[0].value == 5.0
        assert sensors[1].value is None

    @pytest.mark.asyncio
    async def test_empty_listing(self, fake_prtg, prtg_client):
        assert await SensorFetcher(prtg_client).fetch_sensors() == []

    @pytest.mark.asyncio
    async def test_malformed_rows_raise_parse_error(self, fake_prtg, prtg_client):
        fake_prtg.sensors = [{"device": "no id"}]

        with pytest.raises(ResponseParseError):
            await SensorFetcher(prtg_client).fetch_sensors()

    @pytest.mark.asyncio
    async def test_api_error_propagates(self, fake_prtg, prtg_client):
        fake_prtg.sensor_status = 401

        with pytest.raises(PrtgApiError) as exc_info:
            await SensorFetcher(prtg_client).fetch_sensors()
        assert exc_info.value.status_code == 401


class TestChannelFetcher:
    """Test ChannelFetcher.fetch_channels"""

    @pytest.mark.asyncio
    async def test_query_parameters(self, fake_prtg, prtg_client):
        await ChannelFetcher(prtg_client).fetch_channels(2001)

        params = fake_prtg.requests[0].url.params
        assert params["content"] == "channels"
        assert params["id"] == "2001"
        assert params["columns"] == CHANNEL_COLUMNS
        assert params["count"] == "1000"

    @pytest.mark.asyncio
    async def test_parses_channels(self, fake_prtg, prtg_client):
        fake_prtg.channels = {
            2001: [
                channel_row(0, "Ping Time", "4 msec", raw=4, unit="msec"),
                channel_row(1, "Packet Loss", "0 %", raw=None),
            ]
        }

        channels = await ChannelFetcher(prtg_client).fetch_channels(2001)

        assert [c.name for c in channels] == ["Ping Time", "Packet Loss"]
        assert channels[0].unit == "msec"
        assert channels[0].value == 4.0
        assert channels[1].value == 0.0

    @pytest.mark.asyncio
    async def test_unknown_sensor_has_no_channels(self, fake_prtg, prtg_client):
        assert await ChannelFetcher(prtg_client).fetch_channels(999) == []

    @pytest.mark.asyncio
    async def test_server_error_after_retries(self, fake_prtg, prtg_client):
        fake_prtg.failing_channels.add(2001)

        with pytest.raises(PrtgApiError):
            await ChannelFetcher(prtg_client).fetch_channels(2001)
        assert len(fake_prtg.channel_requests()) == 4
