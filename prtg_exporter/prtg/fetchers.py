"""
Sensor and channel fetchers: one table query each, parsed into models.
"""
from typing import Any, List, Type

from pydantic import ValidationError

from prtg_exporter.common.exceptions import ResponseParseError
from prtg_exporter.common.logging_config import get_logger
from prtg_exporter.prtg.client import PrtgApiClient
from prtg_exporter.prtg.models import (
    Channel,
    ChannelTable,
    Sensor,
    SensorTable,
    TableResponse,
)

logger = get_logger(__name__)

SENSOR_PAGE_SIZE = 10000
CHANNEL_PAGE_SIZE = 1000

SENSOR_COLUMNS = "objid,device,probe,group,sensor,lastvalue,lastvalue_"
CHANNEL_COLUMNS = "objid,name=textraw,unit=textraw,lastvalue,lastvalue_raw,lastvalue_"


def _parse_table(payload: Any, table_type: Type[TableResponse]) -> list:
    try:
        return table_type.model_validate(payload).items
    except ValidationError as e:
        raise ResponseParseError(
            f"Unexpected table document: {e.error_count()} validation error(s)"
        ) from e


class SensorFetcher:
    """Retrieves the full sensor list in a single page."""

    def __init__(self, client: PrtgApiClient, page_size: int = SENSOR_PAGE_SIZE):
        self.client = client
        self.page_size = page_size

    async def fetch_sensors(self) -> List[Sensor]:
        payload = await self.client.get_table({
            "content": "sensors",
            "columns": SENSOR_COLUMNS,
            "count": self.page_size,
        })
        sensors = _parse_table(payload, SensorTable)
        logger.debug(f"Fetched {len(sensors)} sensors")
        return sensors


class ChannelFetcher:
    """Retrieves the channel rows of one sensor."""

    def __init__(self, client: PrtgApiClient, page_size: int = CHANNEL_PAGE_SIZE):
        self.client = client
        self.page_size = page_size

    async def fetch_channels(self, sensor_id: int) -> List[Channel]:
        payload = await self.client.get_table({
            "content": "channels",
            "id": sensor_id,
            "columns": CHANNEL_COLUMNS,
            "count": self.page_size,
        })
        return _parse_table(payload, ChannelTable)
