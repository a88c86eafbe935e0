"""Conversion between OpenAI chat payloads and a text-only backend."""

from .token_counting import (
    get_token_encoder,
    count_message_tokens,
    count_text_tokens,
    truncate_to_tokens
)

from .prompt_builder import (
    generate_tool_system_prompt,
    prepare_messages_for_backend,
    should_use_function_calling
)

from .response_parser import (
    detect_function_calls,
    extract_function_calls,
    generate_tool_call_id,
    serialize_tool_calls
)

from .fallback import (
    ArgumentExtractor,
    FallbackSynthesizer,
    synthesize_tool_call
)

from .response_builder import (
    SSE_DONE,
    build_chat_completion,
    generate_completion_id,
    split_content,
    iter_chat_completion_chunks,
    stream_chat_completion,
    format_sse_event
)

from .error_handling import (
    get_openai_error_details_from_exc,
    build_openai_error_response,
    format_error_sse_event,
    log_and_return_error_response
)

__all__ = [
    # Token counting
    "get_token_encoder",
    "count_message_tokens",
    "count_text_tokens",
    "truncate_to_tokens",

    # Prompt compiler
    "generate_tool_system_prompt",
    "prepare_messages_for_backend",
    "should_use_function_calling",

    # Response parser
    "detect_function_calls",
    "extract_function_calls",
    "generate_tool_call_id",
    "serialize_tool_calls",

    # Fallback synthesis
    "ArgumentExtractor",
    "FallbackSynthesizer",
    "synthesize_tool_call",

    # Response assembler
    "SSE_DONE",
    "build_chat_completion",
    "generate_completion_id",
    "split_content",
    "iter_chat_completion_chunks",
    "stream_chat_completion",
    "format_sse_event",

    # Error handling
    "get_openai_error_details_from_exc",
    "build_openai_error_response",
    "format_error_sse_event",
    "log_and_return_error_response"
]
