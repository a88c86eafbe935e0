"""Assemble OpenAI-shaped completions and re-chunk them for streaming."""

import asyncio
import json
import re
import time
import uuid
from typing import AsyncGenerator, Iterator, List, Optional

from ..models import (
    AssistantMessage,
    ChatCompletion,
    ChatCompletionChunk,
    Choice,
    ChunkChoice,
    ChunkDelta,
    ChunkToolCall,
    ToolCall,
    Usage,
)
from ..utils.logging import LogEvent, LogRecord, debug, info

SSE_DONE = "data: [DONE]\n\n"

_CONTENT_PIECE = re.compile(r"\S+\s*|\s+")


def generate_completion_id() -> str:
    return f"chatcmpl-{uuid.uuid4().hex[:24]}"


def build_chat_completion(
    model: str,
    content: Optional[str],
    tool_calls: Optional[List[ToolCall]] = None,
    usage: Optional[Usage] = None,
    truncated: bool = False,
    completion_id: Optional[str] = None,
    created: Optional[int] = None,
) -> ChatCompletion:
    """
    Build a non-streaming chat completion.

    A non-empty ``tool_calls`` list wins: content is nulled and the finish
    reason is ``tool_calls``. Otherwise the finish reason is ``length`` when
    ``truncated`` is set and ``stop`` when it is not.
    """
    if tool_calls:
        message = AssistantMessage(content=None, tool_calls=list(tool_calls))
        finish_reason = "tool_calls"
    else:
        message = AssistantMessage(content=content if content is not None else "")
        finish_reason = "length" if truncated else "stop"

    return ChatCompletion(
        id=completion_id or generate_completion_id(),
        created=created if created is not None else int(time.time()),
        model=model,
        choices=[Choice(index=0, message=message, finish_reason=finish_reason)],
        usage=usage or Usage(prompt_tokens=0, completion_tokens=0, total_tokens=0),
    )


def split_content(content: str, words_per_chunk: int = 1) -> List[str]:
    """Split text into word pieces that keep their trailing whitespace."""
    pieces = _CONTENT_PIECE.findall(content)
    step = max(1, words_per_chunk)
    return ["".join(pieces[i:i + step]) for i in range(0, len(pieces), step)]


def _chunk(completion: ChatCompletion, delta: ChunkDelta, finish_reason=None) -> ChatCompletionChunk:
    return ChatCompletionChunk(
        id=completion.id,
        created=completion.created,
        model=completion.model,
        choices=[ChunkChoice(index=0, delta=delta, finish_reason=finish_reason)],
    )


def iter_chat_completion_chunks(
    completion: ChatCompletion, words_per_chunk: int = 1
) -> Iterator[ChatCompletionChunk]:
    """Yield the synthetic delta sequence for a finished completion."""
    choice = completion.choices[0]
    message = choice.message

    yield _chunk(completion, ChunkDelta(role="assistant"))

    if message.tool_calls:
        yield _chunk(
            completion,
            ChunkDelta(
                tool_calls=[
                    ChunkToolCall(index=index, id=call.id, function=call.function)
                    for index, call in enumerate(message.tool_calls)
                ]
            ),
        )
    elif message.content:
        for piece in split_content(message.content, words_per_chunk):
            yield _chunk(completion, ChunkDelta(content=piece))

    yield _chunk(completion, ChunkDelta(), finish_reason=choice.finish_reason)


def format_sse_event(chunk: ChatCompletionChunk) -> str:
    return f"data: {json.dumps(chunk.model_dump())}\n\n"


async def stream_chat_completion(
    completion: ChatCompletion,
    words_per_chunk: int = 1,
    chunk_delay: float = 0.0,
    request_id: Optional[str] = None,
) -> AsyncGenerator[str, None]:
    """Emit a finished completion as SSE frames terminated by ``[DONE]``."""
    sent_chunks = 0
    debug(
        LogRecord(
            event=LogEvent.STREAM_STARTED.value,
            message="Streaming chat completion",
            request_id=request_id,
            data={"completion_id": completion.id, "model": completion.model},
        )
    )
    try:
        for chunk in iter_chat_completion_chunks(completion, words_per_chunk):
            yield format_sse_event(chunk)
            sent_chunks += 1
            if chunk_delay > 0:
                await asyncio.sleep(chunk_delay)
        yield SSE_DONE
    except (GeneratorExit, asyncio.CancelledError):
        info(
            LogRecord(
                event=LogEvent.STREAM_CLIENT_DISCONNECTED.value,
                message="Client disconnected during streaming",
                request_id=request_id,
                data={"completion_id": completion.id, "chunks_sent": sent_chunks},
            )
        )
        raise

    debug(
        LogRecord(
            event=LogEvent.STREAM_COMPLETED.value,
            message="Streaming completed",
            request_id=request_id,
            data={"completion_id": completion.id, "chunks_sent": sent_chunks},
        )
    )
