"""
Monitoring module - Prometheus registry and scrape endpoint.
"""
from prtg_exporter.monitoring.metrics import (
    CHANNEL_FAMILY,
    SENSOR_FAMILY,
    MetricsRegistry,
    get_metrics_registry,
    start_metrics_server,
)

__all__ = [
    "CHANNEL_FAMILY",
    "SENSOR_FAMILY",
    "MetricsRegistry",
    "get_metrics_registry",
    "start_metrics_server",
]
