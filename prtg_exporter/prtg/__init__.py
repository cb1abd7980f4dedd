"""
PRTG API access - HTTP client, table models, fetchers and value normalization.
"""
from prtg_exporter.prtg.client import PrtgApiClient
from prtg_exporter.prtg.fetchers import ChannelFetcher, SensorFetcher
from prtg_exporter.prtg.models import Channel, Sensor, TableResponse
from prtg_exporter.prtg.normalizer import parse_number

__all__ = [
    "PrtgApiClient",
    "SensorFetcher",
    "ChannelFetcher",
    "Sensor",
    "Channel",
    "TableResponse",
    "parse_number",
]
