"""
Polling - refresh orchestration and the fixed-interval scheduler.
"""
from prtg_exporter.poller.orchestrator import (
    MAX_CONCURRENT_CHANNEL_CALLS,
    RefreshOrchestrator,
    RefreshResult,
)
from prtg_exporter.poller.scheduler import RefreshScheduler

__all__ = [
    "MAX_CONCURRENT_CHANNEL_CALLS",
    "RefreshOrchestrator",
    "RefreshResult",
    "RefreshScheduler",
]
