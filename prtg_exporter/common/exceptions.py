"""
Custom exceptions for the PRTG exporter.
Hierarchical exception structure so callers can tell retryable API failures
apart from parse failures and refresh-level failures.
"""
from typing import Optional


class BaseExporterException(Exception):
    """Base exception for the PRTG exporter"""
    pass


class ConfigurationError(BaseExporterException):
    """Error in configuration loading or validation"""
    pass


class PrtgApiError(BaseExporterException):
    """Unexpected HTTP status returned by the PRTG API"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ServerResponseError(PrtgApiError):
    """PRTG answered with a 5xx status (retryable)"""
    pass


class ResponseParseError(BaseExporterException):
    """Response body is not a valid PRTG table document"""
    pass


class SensorFetchError(BaseExporterException):
    """The sensor listing could not be fetched; the whole refresh is aborted"""
    pass
