from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from ward_monitor.main import app
from ward_monitor.modules.alerts.config import DEFAULT_RULES, MonitorRulesConfig
from ward_monitor.modules.alerts.engine import MonitorService
from ward_monitor.modules.alerts.service import alert_manager, monitor_service
from tests.modules.alerts.helpers import BASE_TIME


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def rules() -> MonitorRulesConfig:
    """A private copy of the built-in rules that tests may edit freely."""
    return DEFAULT_RULES.model_copy(deep=True)


@pytest.fixture
def service(rules: MonitorRulesConfig) -> MonitorService:
    return MonitorService(rules=rules, clock=lambda: BASE_TIME)


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture(autouse=True)
def reset_monitor() -> None:
    """
    Ensure the application-wide monitor starts each test with no roster,
    no alerts, no suppression history and no subscribers.
    """
    monitor_service.reset()
    alert_manager.reset()
