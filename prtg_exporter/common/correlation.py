"""
Refresh-cycle identifiers for log tracing.
Every refresh runs inside a RefreshContext so that all log lines it emits,
including those from concurrent channel-fetch tasks, carry the same id.
"""
import uuid
import logging
from typing import Optional
from contextvars import ContextVar, Token

# asyncio tasks copy the current context when created, so channel tasks
# spawned inside a refresh inherit its id
_refresh_id_var: ContextVar[Optional[str]] = ContextVar(
    'refresh_id', default=None
)

_component_var: ContextVar[Optional[str]] = ContextVar(
    'component', default=None
)


def generate_refresh_id() -> str:
    """Return a short random id for one refresh cycle."""
    return uuid.uuid4().hex[:12]


def set_refresh_id(refresh_id: Optional[str]) -> Token:
    return _refresh_id_var.set(refresh_id)


def get_refresh_id() -> Optional[str]:
    return _refresh_id_var.get()


def set_component(component: str) -> None:
    """
    Set the component name for the current context.

    Args:
        component: Component name (e.g., "scheduler", "orchestrator")
    """
    _component_var.set(component)


def get_component() -> Optional[str]:
    return _component_var.get()


class CorrelationFilter(logging.Filter):
    """
    Logging filter that injects refresh_id and component into log records.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.refresh_id = get_refresh_id() or ""
        record.component = get_component() or ""
        return True


class RefreshContext:
    """
    Context manager binding a refresh id to the current context.

    Usage:
        with RefreshContext() as ctx:
            logger.info("refresh started")   # carries ctx.refresh_id
    """

    def __init__(self, refresh_id: Optional[str] = None):
        self.refresh_id = refresh_id or generate_refresh_id()
        self._token: Optional[Token] = None

    def __enter__(self) -> 'RefreshContext':
        self._token = set_refresh_id(self.refresh_id)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _refresh_id_var.reset(self._token)
            self._token = None
