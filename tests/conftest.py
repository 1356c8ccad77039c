from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from interview_ai.core.config import settings

# Override settings for tests
settings.openai_api_key = "sk-test-key-aaaaaaaa"
settings.openai_api_key_2 = "sk-test-key-bbbbbbbb"
settings.openai_api_key_3 = ""
settings.openai_api_keys = ""
settings.app_env = "development"

from interview_ai.core.rate_limit import limiter  # noqa: E402
from interview_ai.gateway.gateway import AIGateway  # noqa: E402
from interview_ai.gateway.types import GatewayConfig  # noqa: E402
from interview_ai.main import app  # noqa: E402
from interview_ai.services.ai_evaluator import InterviewAIService  # noqa: E402

limiter.enabled = False


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Stands in for asyncio.sleep; records requested delays without waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def gateway_config() -> GatewayConfig:
    return GatewayConfig(concurrency_limit=5, request_timeout_seconds=2.0, max_attempts=3)


@pytest.fixture
def gateway(gateway_config, recording_sleep) -> AIGateway:
    gw = AIGateway(api_keys=["sk-key-alpha-0001", "sk-key-bravo-0002"], config=gateway_config)
    gw.invoker._sleep = recording_sleep
    return gw


@pytest.fixture
def ai_service(gateway) -> InterviewAIService:
    return InterviewAIService(gateway, settings)


@pytest.fixture
async def client(gateway, ai_service) -> AsyncGenerator[AsyncClient, None]:
    app.state.gateway = gateway
    app.state.ai_service = ai_service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
