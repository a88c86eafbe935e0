"""
Model listing API routes.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..core import ChatCompletionService


def create_models_router(service: ChatCompletionService) -> APIRouter:
    """Create models router with service dependency."""
    router = APIRouter(prefix="/v1", tags=["API"])

    @router.get("/models")
    async def list_models() -> JSONResponse:
        """List the models accepted by this service."""
        return JSONResponse(content=service.get_models().model_dump())

    return router
