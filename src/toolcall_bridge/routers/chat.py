"""
Chat completion API routes.
"""

import uuid

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse

from ..conversion import log_and_return_error_response
from ..core import ChatCompletionService
from ..utils.logging import LogEvent, LogRecord, info


def create_chat_router(service: ChatCompletionService) -> APIRouter:
    """Create chat router with service dependency."""
    router = APIRouter(prefix="/v1", tags=["API"])

    @router.post("/chat/completions", response_model=None)
    async def create_chat_completion(request: Request):
        """OpenAI-compatible chat completions with emulated function calling."""
        request_id = str(uuid.uuid4())

        try:
            payload = await request.json()
            chat_request = service.validate_request(payload)

            info(
                LogRecord(
                    event=LogEvent.REQUEST_RECEIVED.value,
                    message=f"Chat completion request for model {chat_request.model}",
                    request_id=request_id,
                    data={
                        "model": chat_request.model,
                        "stream": bool(chat_request.stream),
                        "message_count": len(chat_request.messages),
                        "tool_count": len(chat_request.tools or []),
                    },
                )
            )

            completion = await service.create_chat_completion(chat_request, request_id=request_id)
        except Exception as e:
            return log_and_return_error_response(e, request_id)

        info(
            LogRecord(
                event=LogEvent.REQUEST_COMPLETED.value,
                message="Chat completion ready",
                request_id=request_id,
                data={
                    "model": completion.model,
                    "finish_reason": completion.choices[0].finish_reason,
                    "usage": completion.usage.model_dump(),
                },
            )
        )

        if chat_request.stream:
            return StreamingResponse(
                service.stream_completion(completion, request_id=request_id),
                media_type="text/event-stream",
                headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
            )
        return JSONResponse(content=completion.model_dump())

    return router
