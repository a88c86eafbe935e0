"""httpx implementation of the chat backend."""

import asyncio
import json
import time
from typing import Any, Dict, Optional

import httpx

from ..utils.logging import (
    LogEvent,
    LogRecord,
    create_debug_request_info,
    debug,
    error,
    warning,
)
from .base import BackendError, BackendErrorKind, BackendRequest, ChatBackend
from .rate_limit import RateLimitInfo


def _retry_after_seconds(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("retry-after")
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _text_from_payload(payload: Any) -> Optional[str]:
    """Pull reply text out of the JSON shapes backends commonly answer with."""
    if isinstance(payload, str):
        return payload
    if not isinstance(payload, dict):
        return None

    choices = payload.get("choices")
    if isinstance(choices, list) and choices:
        first = choices[0] if isinstance(choices[0], dict) else {}
        message = first.get("message") or first.get("delta") or {}
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]
        if isinstance(first.get("text"), str):
            return first["text"]

    for key in ("message", "content", "text"):
        if isinstance(payload.get(key), str):
            return payload[key]
    return None


def _read_event_stream(body: str) -> str:
    fragments = []
    for line in body.splitlines():
        line = line.strip()
        if not line.startswith("data:"):
            continue
        data = line[len("data:"):].strip()
        if not data or data == "[DONE]":
            continue
        try:
            payload = json.loads(data)
        except ValueError:
            fragments.append(data)
            continue
        text = _text_from_payload(payload)
        if text:
            fragments.append(text)
    return "".join(fragments)


def _error_message_from_response(response: httpx.Response) -> str:
    suffix = ""
    try:
        body = response.json()
    except ValueError:
        body = response.text.strip()[:500]
    if isinstance(body, dict) and "error" in body:
        if isinstance(body["error"], str):
            suffix = f": {body['error']}"
        elif isinstance(body["error"], dict) and "message" in body["error"]:
            suffix = f": {body['error']['message']}"
    elif isinstance(body, str) and body:
        suffix = f": {body}"
    return f"HTTP {response.status_code} from backend{suffix}"


class HttpChatBackend(ChatBackend):
    """
    Chat backend reached over HTTP.

    Posts ``{model, messages}`` to ``url`` and accepts an SSE stream of
    ``data: {"message": ...}`` fragments, an OpenAI-style completion, a JSON
    object carrying ``message``/``content``/``text``, or plain text. Every
    request is counted in a 60 second window for the rate-limit monitor.
    """

    def __init__(
        self,
        url: Optional[str],
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        max_requests_per_minute: int = 20,
        min_request_interval: float = 1.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.headers = {"Content-Type": "application/json", "Accept": "text/event-stream, application/json"}
        self.headers.update(headers or {})
        self.max_requests_per_minute = max_requests_per_minute
        self.min_request_interval = min_request_interval
        self.rate_limit_info = RateLimitInfo(window_start=time.time())
        self._client = client
        self._owns_client = client is None

    def get_rate_limit_info(self) -> RateLimitInfo:
        return self.rate_limit_info

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _respect_min_interval(self) -> None:
        last = self.rate_limit_info.last_request_time
        if not last or self.min_request_interval <= 0:
            return
        remaining = self.min_request_interval - (time.time() - last)
        if remaining > 0:
            await asyncio.sleep(remaining)

    async def chat(self, request: BackendRequest) -> str:
        if not self.url:
            raise BackendError(BackendErrorKind.CONFIGURATION, "Backend URL is not configured")

        payload: Dict[str, Any] = {"model": request.model, "messages": request.messages}
        payload.update(request.options)

        await self._respect_min_interval()
        self.rate_limit_info.record_request()

        debug(
            LogRecord(
                event=LogEvent.BACKEND_REQUEST.value,
                message=f"Sending {len(request.messages)} message(s) to backend",
                request_id=request.request_id,
                data=create_debug_request_info(self.url, self.headers, payload),
            )
        )

        try:
            response = await self._get_client().post(self.url, json=payload, headers=self.headers)
        except httpx.TimeoutException as exc:
            raise self._log_failure(
                BackendError(BackendErrorKind.TIMEOUT, f"Backend request timed out: {exc}"), request.request_id
            ) from exc
        except httpx.HTTPError as exc:
            # Connection failures plus undecodable bodies and redirect loops
            raise self._log_failure(
                BackendError(BackendErrorKind.TRANSPORT, f"Backend request failed: {type(exc).__name__}: {exc}"),
                request.request_id,
            ) from exc

        if response.status_code >= 400:
            retry_after = _retry_after_seconds(response)
            backend_error = BackendError.from_status(
                response.status_code, _error_message_from_response(response), retry_after=retry_after
            )
            if backend_error.kind is BackendErrorKind.RATE_LIMITED:
                self.rate_limit_info.is_limited = True
                self.rate_limit_info.retry_after = retry_after
            raise self._log_failure(backend_error, request.request_id)

        self.rate_limit_info.is_limited = False
        self.rate_limit_info.retry_after = None

        text = self._read_reply(response)
        if not text:
            warning(
                LogRecord(
                    event=LogEvent.BACKEND_EMPTY_RESPONSE.value,
                    message="Backend returned an empty reply",
                    request_id=request.request_id,
                    data={"status_code": response.status_code},
                )
            )
        else:
            debug(
                LogRecord(
                    event=LogEvent.BACKEND_RESPONSE.value,
                    message=f"Backend replied with {len(text)} characters",
                    request_id=request.request_id,
                    data={"status_code": response.status_code},
                )
            )
        return text

    def _read_reply(self, response: httpx.Response) -> str:
        content_type = response.headers.get("content-type", "")
        body = response.text
        if "text/event-stream" in content_type or body.lstrip().startswith("data:"):
            return _read_event_stream(body)
        if "json" in content_type:
            try:
                payload = response.json()
            except ValueError:
                return body
            text = _text_from_payload(payload)
            return text if text is not None else body
        return body

    def _log_failure(self, exc: BackendError, request_id: Optional[str]) -> BackendError:
        event = LogEvent.BACKEND_RATE_LIMITED if exc.kind is BackendErrorKind.RATE_LIMITED else LogEvent.BACKEND_ERROR
        error(
            LogRecord(
                event=event.value,
                message=exc.message,
                request_id=request_id,
                data={"error_kind": exc.kind.value, "status_code": exc.status_code, "url": self.url},
            )
        )
        return exc
