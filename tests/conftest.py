"""
Shared fixtures for unit and integration tests.
"""
import httpx
import pytest
import pytest_asyncio

from prtg_exporter.monitoring.metrics import MetricsRegistry
from prtg_exporter.prtg.client import PrtgApiClient
from tests.fakes import PRTG_URL, FakePrtg, no_sleep


@pytest.fixture
def fake_prtg():
    return FakePrtg()


@pytest.fixture
def registry():
    """Isolated registry per test."""
    return MetricsRegistry()


@pytest_asyncio.fixture
async def prtg_client(fake_prtg):
    client = PrtgApiClient(
        PRTG_URL,
        "prometheus",
        "s3cr3t",
        transport=httpx.MockTransport(fake_prtg.handler),
        sleep=no_sleep,
    )
    yield client
    await client.close()
