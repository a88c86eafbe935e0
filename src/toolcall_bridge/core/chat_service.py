"""Chat completion service: function calling emulated over a text-only backend."""

import time
from typing import Any, AsyncGenerator, Dict, List, Optional, Union

from ..backend import BackendError, BackendRequest, ChatBackend, RateLimitMonitor
from ..config import Settings
from ..conversion import (
    SSE_DONE,
    FallbackSynthesizer,
    build_chat_completion,
    count_message_tokens,
    count_text_tokens,
    extract_function_calls,
    format_error_sse_event,
    get_openai_error_details_from_exc,
    get_token_encoder,
    prepare_messages_for_backend,
    serialize_tool_calls,
    should_use_function_calling,
    stream_chat_completion,
    truncate_to_tokens,
)
from ..models import (
    ChatCompletion,
    ChatCompletionRequest,
    ModelInfo,
    ModelList,
    ToolCall,
    Usage,
    forced_function_name,
    is_mandatory_tool_choice,
)
from ..utils.logging import LogEvent, LogRecord, error, info, warning
from .tool_executor import execute_function_call, execute_tool_calls
from .tool_registry import ToolFunction, ToolRegistry


class ChatCompletionService:
    """
    Orchestrates one chat completion request.

    The tool prompt is injected into the messages sent to the backend, tool
    calls are parsed out of the raw reply, and a call is synthesized when the
    tool choice demands one that the backend did not produce. Backend
    failures are only absorbed under such a mandatory tool choice, and never
    when the backend itself is misconfigured.
    """

    def __init__(
        self,
        backend: ChatBackend,
        settings: Optional[Settings] = None,
        registry: Optional[ToolRegistry] = None,
        fallback: Optional[FallbackSynthesizer] = None,
    ):
        self.backend = backend
        self.settings = settings or Settings(config_path=None)
        self.registry = registry if registry is not None else ToolRegistry()
        self.fallback = fallback or FallbackSynthesizer()
        self.encoder = get_token_encoder(self.settings.token_encoder)
        self.created_at = int(time.time())
        self.rate_limit_monitor: Optional[RateLimitMonitor] = None
        if hasattr(backend, "get_rate_limit_info"):
            self.rate_limit_monitor = RateLimitMonitor(backend)

    def validate_request(self, payload: Union[Dict[str, Any], ChatCompletionRequest]) -> ChatCompletionRequest:
        if isinstance(payload, ChatCompletionRequest):
            return payload
        return ChatCompletionRequest.model_validate(payload)

    async def _call_backend(
        self, request: ChatCompletionRequest, messages: List[Dict[str, str]], request_id: Optional[str]
    ) -> str:
        mandatory = is_mandatory_tool_choice(request.tool_choice)
        try:
            return await self.backend.chat(
                BackendRequest(model=request.model, messages=messages, request_id=request_id)
            )
        except BackendError as exc:
            if not mandatory or not exc.kind.is_content_failure:
                raise
            warning(
                LogRecord(
                    event=LogEvent.BACKEND_ERROR_SUPPRESSED.value,
                    message="Backend failed under a mandatory tool choice, falling back to a synthesized call",
                    request_id=request_id,
                    data={"error_kind": exc.kind.value, "status_code": exc.status_code},
                ),
                exc=exc,
            )
            return ""

    def _collect_tool_calls(
        self, request: ChatCompletionRequest, text: str, request_id: Optional[str]
    ) -> List[ToolCall]:
        tool_calls = extract_function_calls(text, request_id=request_id)
        if tool_calls:
            info(
                LogRecord(
                    event=LogEvent.TOOL_CALLS_DETECTED.value,
                    message=f"Backend requested {len(tool_calls)} tool call(s)",
                    request_id=request_id,
                    data={"tool_names": [c.function.name for c in tool_calls]},
                )
            )

        forced_name = forced_function_name(request.tool_choice)
        if forced_name is not None:
            kept = [c for c in tool_calls if c.function.name == forced_name]
            if len(kept) != len(tool_calls):
                info(
                    LogRecord(
                        event=LogEvent.TOOL_CALLS_DISCARDED.value,
                        message=f"Discarded tool calls not targeting '{forced_name}'",
                        request_id=request_id,
                        data={"discarded": [c.function.name for c in tool_calls if c.function.name != forced_name]},
                    )
                )
            tool_calls = kept

        if not tool_calls and is_mandatory_tool_choice(request.tool_choice):
            synthesized = self.fallback.synthesize(
                request.tools, request.tool_choice, request.messages, request_id=request_id
            )
            if synthesized is not None:
                tool_calls = [synthesized]
        return tool_calls

    async def create_chat_completion(
        self, request: Union[Dict[str, Any], ChatCompletionRequest], request_id: Optional[str] = None
    ) -> ChatCompletion:
        request = self.validate_request(request)
        use_tools = should_use_function_calling(request.tools, request.tool_choice)
        messages = prepare_messages_for_backend(
            request.messages, request.tools, request.tool_choice, request_id=request_id
        )

        text = await self._call_backend(request, messages, request_id)
        tool_calls = self._collect_tool_calls(request, text, request_id) if use_tools else []

        prompt_tokens = count_message_tokens(messages, self.encoder)
        truncated = False
        if tool_calls:
            completion_tokens = count_text_tokens(serialize_tool_calls(tool_calls), self.encoder)
        else:
            completion_tokens = count_text_tokens(text, self.encoder)
            if request.max_tokens is not None and completion_tokens > request.max_tokens:
                text = truncate_to_tokens(text, request.max_tokens, self.encoder)
                completion_tokens = count_text_tokens(text, self.encoder)
                truncated = True
                info(
                    LogRecord(
                        event=LogEvent.RESPONSE_TRUNCATED.value,
                        message=f"Reply truncated to max_tokens={request.max_tokens}",
                        request_id=request_id,
                    )
                )

        usage = Usage(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        )
        return build_chat_completion(request.model, text, tool_calls, usage=usage, truncated=truncated)

    async def stream_completion(
        self, completion: ChatCompletion, request_id: Optional[str] = None
    ) -> AsyncGenerator[str, None]:
        """Stream an already assembled completion as SSE frames."""
        try:
            async for frame in stream_chat_completion(
                completion,
                words_per_chunk=self.settings.stream_words_per_chunk,
                chunk_delay=self.settings.stream_chunk_delay,
                request_id=request_id,
            ):
                yield frame
        except Exception as exc:
            async for frame in self._stream_error(exc, request_id):
                yield frame

    async def create_chat_completion_stream(
        self, request: Union[Dict[str, Any], ChatCompletionRequest], request_id: Optional[str] = None
    ) -> AsyncGenerator[str, None]:
        """Produce the completion and stream it, reporting failures as an SSE error event."""
        try:
            completion = await self.create_chat_completion(request, request_id=request_id)
        except Exception as exc:
            async for frame in self._stream_error(exc, request_id):
                yield frame
            return
        async for frame in self.stream_completion(completion, request_id=request_id):
            yield frame

    async def _stream_error(self, exc: Exception, request_id: Optional[str]) -> AsyncGenerator[str, None]:
        error_type, message, status_code, code = get_openai_error_details_from_exc(exc)
        error(
            LogRecord(
                event=LogEvent.STREAM_ERROR.value,
                message=f"Error while streaming: {message}",
                request_id=request_id,
                data={"status_code": status_code, "error_type": error_type.value},
            ),
            exc=exc,
        )
        yield format_error_sse_event(error_type, message, code=code)
        yield SSE_DONE

    def register_function(self, name: str, function: ToolFunction) -> None:
        self.registry.register(name, function)

    async def execute_tool_call(self, tool_call: ToolCall, request_id: Optional[str] = None) -> str:
        return await execute_function_call(tool_call, self.registry, request_id=request_id)

    async def execute_tool_calls(
        self, tool_calls: List[ToolCall], request_id: Optional[str] = None
    ) -> List[Dict[str, str]]:
        return await execute_tool_calls(tool_calls, self.registry, request_id=request_id)

    def get_models(self) -> ModelList:
        return ModelList(
            data=[
                ModelInfo(id=model_id, created=self.created_at, owned_by=self.settings.model_owner)
                for model_id in self.settings.models
            ]
        )

    def get_rate_limit_status(self) -> Optional[Dict[str, Any]]:
        if self.rate_limit_monitor is None:
            return None
        return self.rate_limit_monitor.get_current_status()
