"""
Health check and monitoring API routes.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..core import ChatCompletionService


def create_health_router(service: ChatCompletionService, app_name: str, app_version: str) -> APIRouter:
    """Create health router with service dependency."""
    router = APIRouter(tags=["Health"])

    @router.get("/", include_in_schema=False)
    async def root_health_check() -> JSONResponse:
        """Basic health check and information endpoint."""
        return JSONResponse(
            content={
                "service": app_name,
                "version": app_version,
                "status": "healthy",
                "tools_registered": len(service.registry),
            }
        )

    @router.get("/health")
    async def health_check() -> JSONResponse:
        return JSONResponse(content={"status": "ok"})

    @router.get("/rate-limit")
    async def rate_limit_status() -> JSONResponse:
        """Current backend request-window utilization with recommendations."""
        monitor = service.rate_limit_monitor
        if monitor is None:
            return JSONResponse(
                content={"status": "unavailable", "message": "Backend does not report rate limit information"}
            )
        status = monitor.get_current_status()
        return JSONResponse(
            content={"status": status, "recommendations": monitor.get_recommendations(status)}
        )

    return router
