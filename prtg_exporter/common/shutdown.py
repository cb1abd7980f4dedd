"""
Graceful shutdown manager with ordered cleanup callbacks.
Centralizes signal handling and resource cleanup for the exporter's event loop.
"""
import asyncio
import inspect
import signal
import time
from enum import Enum
from typing import Callable, List, Optional, Tuple

from prtg_exporter.common.logging_config import get_logger

logger = get_logger(__name__)


class ShutdownState(Enum):
    """Shutdown manager states"""
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class ShutdownManager:
    """
    Shutdown manager with ordered cleanup.

    Callbacks may be plain functions or coroutine functions and run in
    priority order (lower first):
        0-9:   Stop producing work (stop the scheduler)
        10-29: Wait for in-flight work
        30-39: Close external connections (PRTG client)
        40-49: Final cleanup (metrics server)

    Usage:
        shutdown = ShutdownManager(timeout=30)
        shutdown.register(scheduler.stop, priority=0, name="scheduler")
        shutdown.register(client.close, priority=30, name="PRTG client")
        shutdown.install_signal_handlers()

        await shutdown.wait_for_shutdown()
        await shutdown.run_callbacks()
    """

    def __init__(self, timeout: float = 30):
        """
        Args:
            timeout: Maximum seconds to spend running all callbacks
        """
        self.timeout = timeout
        self.state = ShutdownState.RUNNING
        self._callbacks: List[Tuple[int, str, Callable]] = []
        self._shutdown_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self.state == ShutdownState.RUNNING

    def register(
        self,
        callback: Callable,
        priority: int = 20,
        name: str = "unnamed"
    ) -> None:
        """
        Register a cleanup callback.

        Args:
            callback: Zero-argument function or coroutine function
            priority: Execution priority (lower = earlier, 0-49)
            name: Descriptive name for logging
        """
        self._callbacks.append((priority, name, callback))
        self._callbacks.sort(key=lambda x: x[0])
        logger.debug(f"Registered shutdown callback: {name} (priority={priority})")

    def install_signal_handlers(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Route SIGINT and SIGTERM to ``initiate_shutdown`` on the event loop."""
        loop = loop or asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._signal_handler, sig)
        logger.info("Signal handlers installed (SIGINT, SIGTERM)")

    def _signal_handler(self, sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}, initiating shutdown...")
        self.initiate_shutdown()

    def initiate_shutdown(self) -> None:
        """Mark shutdown as started and wake ``wait_for_shutdown`` callers."""
        if self.state != ShutdownState.RUNNING:
            logger.warning("Shutdown already in progress, ignoring")
            return
        self.state = ShutdownState.SHUTTING_DOWN
        self._shutdown_event.set()

    async def wait_for_shutdown(self) -> None:
        await self._shutdown_event.wait()

    async def run_callbacks(self) -> None:
        """Execute all registered callbacks in priority order within the timeout."""
        if self.state == ShutdownState.RUNNING:
            self.state = ShutdownState.SHUTTING_DOWN
        logger.info(f"Shutdown initiated, executing {len(self._callbacks)} callbacks...")
        start_time = time.monotonic()

        for priority, name, callback in self._callbacks:
            remaining = self.timeout - (time.monotonic() - start_time)
            if remaining <= 0:
                logger.error(
                    f"Shutdown timeout ({self.timeout}s) exceeded, "
                    f"skipping remaining callbacks"
                )
                break

            logger.info(f"Executing shutdown callback: {name} (priority={priority})")
            try:
                outcome = callback()
                if inspect.isawaitable(outcome):
                    await asyncio.wait_for(outcome, timeout=remaining)
                logger.info(f"Callback completed: {name}")
            except asyncio.TimeoutError:
                logger.error(f"Callback timed out: {name}")
            except Exception as e:
                logger.error(f"Callback failed: {name} - {e}")

        self.state = ShutdownState.STOPPED
        logger.info(f"Shutdown complete in {time.monotonic() - start_time:.2f}s")
