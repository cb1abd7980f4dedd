"""
Refresh scheduler: invokes the orchestrator on a fixed interval until stopped.
"""
import asyncio
from typing import Optional, Set

from prtg_exporter.common.correlation import set_component
from prtg_exporter.common.logging_config import get_logger
from prtg_exporter.monitoring.metrics import MetricsRegistry
from prtg_exporter.poller.orchestrator import RefreshOrchestrator, RefreshResult

logger = get_logger(__name__)

DEFAULT_REFRESH_INTERVAL_SECONDS = 120.0


class RefreshScheduler:
    """
    Fixed-interval driver for ``RefreshOrchestrator.refresh``.

    A failed refresh is logged and counted; the next tick fires as usual.

    Overlap policy:
        skip_overlapping_ticks=True  - refreshes are serialized; ticks that
                                       elapse while one runs are skipped
        skip_overlapping_ticks=False - every tick starts its own refresh,
                                       even if the previous one is running
    """

    def __init__(
        self,
        orchestrator: RefreshOrchestrator,
        interval_seconds: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
        skip_overlapping_ticks: bool = True,
        registry: Optional[MetricsRegistry] = None,
    ):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be > 0, got {interval_seconds}")
        self.orchestrator = orchestrator
        self.interval_seconds = interval_seconds
        self.skip_overlapping_ticks = skip_overlapping_ticks
        self.registry = registry if registry is not None else orchestrator.registry

        self._stop_event = asyncio.Event()
        self._tasks: Set[asyncio.Task] = set()

        # Statistics
        self.ticks = 0
        self.skipped_ticks = 0
        self.refreshes_completed = 0
        self.refreshes_failed = 0

    @property
    def is_running(self) -> bool:
        return not self._stop_event.is_set()

    def stop(self) -> None:
        """Stop ticking and cancel any in-flight refresh."""
        if not self._stop_event.is_set():
            logger.info("Scheduler stopping")
        self._stop_event.set()
        for task in list(self._tasks):
            task.cancel()

    async def run(self, max_ticks: Optional[int] = None) -> None:
        """
        Tick until ``stop()`` is called (or ``max_ticks`` ticks have fired).
        The first refresh starts immediately.
        """
        set_component("scheduler")
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        logger.info(
            f"Scheduler started (interval={self.interval_seconds}s, "
            f"skip_overlapping_ticks={self.skip_overlapping_ticks})"
        )

        try:
            while not self._stop_event.is_set():
                self.ticks += 1
                task = self._start_refresh()
                if self.skip_overlapping_ticks:
                    try:
                        await task
                    except asyncio.CancelledError:
                        if self._stop_event.is_set():
                            break
                        raise

                if max_ticks is not None and self.ticks >= max_ticks:
                    break

                next_tick += self.interval_seconds
                now = loop.time()
                if now >= next_tick:
                    missed = int((now - next_tick) // self.interval_seconds) + 1
                    next_tick += missed * self.interval_seconds
                    self.skipped_ticks += missed
                    self.registry.inc_skipped_ticks(missed)
                    logger.warning(
                        f"Refresh overran the {self.interval_seconds}s interval, "
                        f"skipping {missed} tick(s)"
                    )

                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(), timeout=max(0.0, next_tick - loop.time())
                    )
                except asyncio.TimeoutError:
                    pass
        except asyncio.CancelledError:
            self.stop()
            raise
        finally:
            await self._drain()
            logger.info(
                f"Scheduler stopped: ticks={self.ticks}, "
                f"completed={self.refreshes_completed}, failed={self.refreshes_failed}, "
                f"skipped={self.skipped_ticks}"
            )

    def _start_refresh(self) -> asyncio.Task:
        task = asyncio.create_task(self._run_refresh())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_refresh(self) -> Optional[RefreshResult]:
        try:
            result = await self.orchestrator.refresh()
        except asyncio.CancelledError:
            logger.info("Refresh cancelled")
            raise
        except Exception as e:
            self.refreshes_failed += 1
            logger.error(f"Error refreshing sensor values: {e}")
            return None
        self.refreshes_completed += 1
        return result

    async def _drain(self) -> None:
        """Wait for refreshes still running (cancelled ones included)."""
        if self._stop_event.is_set():
            for task in list(self._tasks):
                task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
