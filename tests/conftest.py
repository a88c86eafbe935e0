"""Pytest configuration and fixtures for toolcall-bridge tests."""

import sys
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, List, Optional, Union

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Add src to Python path
current_dir = Path(__file__).parent
src_dir = current_dir.parent / "src"
sys.path.insert(0, str(src_dir))

from toolcall_bridge.backend import BackendRequest, ChatBackend
from toolcall_bridge.config import Settings
from toolcall_bridge.core import ChatCompletionService
from toolcall_bridge.main import create_app


class StubBackend(ChatBackend):
    """Backend double returning queued replies or raising queued exceptions."""

    def __init__(self, replies: Optional[List[Union[str, BaseException]]] = None):
        self.replies: List[Union[str, BaseException]] = list(replies or [])
        self.requests: List[BackendRequest] = []
        self.closed = False

    def queue(self, *replies: Union[str, BaseException]) -> None:
        self.replies.extend(replies)

    async def chat(self, request: BackendRequest) -> str:
        self.requests.append(request)
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, BaseException):
            raise reply
        return reply

    async def close(self) -> None:
        self.closed = True


CALCULATE_TOOL: Dict[str, Any] = {
    "type": "function",
    "function": {
        "name": "calculate",
        "description": "Perform mathematical calculations",
        "parameters": {
            "type": "object",
            "properties": {
                "expression": {"type": "string", "description": "Mathematical expression to evaluate"},
            },
            "required": ["expression"],
        },
    },
}

TIME_TOOL: Dict[str, Any] = {
    "type": "function",
    "function": {"name": "get_current_time", "description": "Get the current time"},
}

WEATHER_TOOL: Dict[str, Any] = {
    "type": "function",
    "function": {
        "name": "get_weather",
        "description": "Get current weather for a location",
        "parameters": {
            "type": "object",
            "properties": {
                "location": {"type": "string", "description": "City name"},
                "unit": {"type": "string", "enum": ["celsius", "fahrenheit"]},
            },
            "required": ["location"],
        },
    },
}


@pytest.fixture
def sample_tools() -> List[Dict[str, Any]]:
    return [TIME_TOOL, CALCULATE_TOOL, WEATHER_TOOL]


@pytest.fixture
def test_settings() -> Settings:
    """Settings that never touch config.yaml or tiktoken downloads."""
    settings = Settings(config_path=None)
    settings.token_encoder = "approximate"
    settings.log_level = "DEBUG"
    settings.backend.min_request_interval = 0
    return settings


@pytest.fixture
def stub_backend() -> StubBackend:
    return StubBackend()


@pytest.fixture
def service(stub_backend: StubBackend, test_settings: Settings) -> ChatCompletionService:
    return ChatCompletionService(stub_backend, test_settings)


@pytest.fixture
def test_app(stub_backend: StubBackend, test_settings: Settings):
    return create_app(settings=test_settings, backend=stub_backend)


@pytest_asyncio.fixture
async def async_client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client bound to the test app."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
