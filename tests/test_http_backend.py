"""
Tests for the httpx chat backend using respx to mock the upstream service.
"""

import json

import httpx
import pytest
import respx

from toolcall_bridge.backend import BackendError, BackendErrorKind, BackendRequest, HttpChatBackend
from toolcall_bridge.core import ChatCompletionService

from conftest import CALCULATE_TOOL

BACKEND_URL = "https://backend.test/chat"


def _request():
    return BackendRequest(model="gpt-4o-mini", messages=[{"role": "user", "content": "hi"}], request_id="req-1")


@pytest.fixture
def backend():
    return HttpChatBackend(BACKEND_URL, timeout=5, min_request_interval=0)


class TestReplyFormats:

    @pytest.mark.asyncio
    @respx.mock
    async def test_event_stream_fragments_are_joined(self, backend):
        body = 'data: {"message": "Hello"}\n\ndata: {"message": " world"}\n\ndata: [DONE]\n\n'
        respx.post(BACKEND_URL).mock(
            return_value=httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})
        )

        assert await backend.chat(_request()) == "Hello world"

    @pytest.mark.asyncio
    @respx.mock
    async def test_openai_completion_body(self, backend):
        respx.post(BACKEND_URL).mock(return_value=httpx.Response(200, json={
            "choices": [{"index": 0, "message": {"role": "assistant", "content": "From choices"}}]
        }))

        assert await backend.chat(_request()) == "From choices"

    @pytest.mark.asyncio
    @respx.mock
    async def test_json_message_field(self, backend):
        respx.post(BACKEND_URL).mock(return_value=httpx.Response(200, json={"message": "From message"}))
        assert await backend.chat(_request()) == "From message"

    @pytest.mark.asyncio
    @respx.mock
    async def test_plain_text_body(self, backend):
        respx.post(BACKEND_URL).mock(
            return_value=httpx.Response(200, text="Plain reply", headers={"content-type": "text/plain"})
        )
        assert await backend.chat(_request()) == "Plain reply"

    @pytest.mark.asyncio
    @respx.mock
    async def test_payload_carries_model_and_messages(self, backend):
        route = respx.post(BACKEND_URL).mock(return_value=httpx.Response(200, json={"message": "ok"}))

        await backend.chat(_request())

        sent = json.loads(route.calls.last.request.content)
        assert sent == {"model": "gpt-4o-mini", "messages": [{"role": "user", "content": "hi"}]}


class TestFailures:

    @pytest.mark.asyncio
    @respx.mock
    async def test_rate_limited_sets_limit_state(self, backend):
        respx.post(BACKEND_URL).mock(return_value=httpx.Response(
            429, json={"error": {"message": "Too many requests"}}, headers={"retry-after": "12"}
        ))

        with pytest.raises(BackendError) as exc_info:
            await backend.chat(_request())

        assert exc_info.value.kind is BackendErrorKind.RATE_LIMITED
        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after == 12.0
        assert "Too many requests" in exc_info.value.message
        info = backend.get_rate_limit_info()
        assert info.is_limited is True
        assert info.retry_after == 12.0

    @pytest.mark.asyncio
    @respx.mock
    async def test_success_clears_limit_state(self, backend):
        respx.post(BACKEND_URL).mock(side_effect=[
            httpx.Response(429, text="slow down"),
            httpx.Response(200, json={"message": "ok"}),
        ])

        with pytest.raises(BackendError):
            await backend.chat(_request())
        assert await backend.chat(_request()) == "ok"
        assert backend.get_rate_limit_info().is_limited is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code, kind", [
        (500, BackendErrorKind.UPSTREAM),
        (503, BackendErrorKind.UPSTREAM),
        (401, BackendErrorKind.AUTHENTICATION),
        (403, BackendErrorKind.AUTHENTICATION),
        (504, BackendErrorKind.TIMEOUT),
    ])
    @respx.mock
    async def test_status_codes_are_classified(self, backend, status_code, kind):
        respx.post(BACKEND_URL).mock(return_value=httpx.Response(status_code, text="failure"))

        with pytest.raises(BackendError) as exc_info:
            await backend.chat(_request())
        assert exc_info.value.kind is kind
        assert exc_info.value.message == f"HTTP {status_code} from backend: failure"

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout(self, backend):
        respx.post(BACKEND_URL).mock(side_effect=httpx.ReadTimeout("read timed out"))

        with pytest.raises(BackendError) as exc_info:
            await backend.chat(_request())
        assert exc_info.value.kind is BackendErrorKind.TIMEOUT

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_error(self, backend):
        respx.post(BACKEND_URL).mock(side_effect=httpx.ConnectError("connection refused"))

        with pytest.raises(BackendError) as exc_info:
            await backend.chat(_request())
        assert exc_info.value.kind is BackendErrorKind.TRANSPORT

    @pytest.mark.asyncio
    @respx.mock
    async def test_undecodable_body_is_a_transport_error(self, backend):
        respx.post(BACKEND_URL).mock(return_value=httpx.Response(
            200, headers={"content-encoding": "gzip"}, stream=httpx.ByteStream(b"not-gzip")
        ))

        with pytest.raises(BackendError) as exc_info:
            await backend.chat(_request())
        assert exc_info.value.kind is BackendErrorKind.TRANSPORT
        assert isinstance(exc_info.value.__cause__, httpx.DecodingError)

    @pytest.mark.asyncio
    async def test_missing_url_is_a_configuration_error(self):
        with pytest.raises(BackendError) as exc_info:
            await HttpChatBackend(url="").chat(_request())
        assert exc_info.value.kind is BackendErrorKind.CONFIGURATION


@pytest.mark.asyncio
@respx.mock
async def test_requests_are_counted_in_window(backend):
    respx.post(BACKEND_URL).mock(return_value=httpx.Response(200, json={"message": "ok"}))

    for _ in range(3):
        await backend.chat(_request())

    info = backend.get_rate_limit_info()
    assert info.request_count == 3
    assert info.last_request_time >= info.window_start


@pytest.mark.asyncio
async def test_close_releases_owned_client(backend):
    backend._get_client()
    await backend.close()
    assert backend._client is None


@pytest.mark.asyncio
@respx.mock
async def test_required_tool_choice_survives_undecodable_body(backend, test_settings):
    respx.post(BACKEND_URL).mock(return_value=httpx.Response(
        200, headers={"content-encoding": "gzip"}, stream=httpx.ByteStream(b"not-gzip")
    ))
    service = ChatCompletionService(backend, test_settings)

    completion = await service.create_chat_completion({
        "model": "gpt-4o-mini",
        "messages": [{"role": "user", "content": "Calculate 5 + 3"}],
        "tools": [CALCULATE_TOOL],
        "tool_choice": "required",
    })

    calls = completion.choices[0].message.tool_calls
    assert calls[0].function.name == "calculate"
    assert json.loads(calls[0].function.arguments) == {"expression": "5 + 3"}
