"""
PRTG to Prometheus exporter.
Polls the PRTG table API and republishes sensor and channel values as gauges.
"""
__version__ = "1.0.0"
