"""
toolcall-bridge - Main Application Entry Point

OpenAI-compatible chat completions with function calling emulated on top of a
text-only chat backend.
"""

import argparse
import time
import uuid
from contextlib import asynccontextmanager
from logging.config import dictConfig
from pathlib import Path
from typing import Optional

import fastapi
import uvicorn
from dotenv import load_dotenv
from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text
from starlette.exceptions import HTTPException as StarletteHTTPException

from .backend import ChatBackend, HttpChatBackend
from .config import PROJECT_ROOT, Settings
from .conversion import build_openai_error_response, log_and_return_error_response
from .core import ChatCompletionService
from .models import OpenAIErrorType
from .routers import create_chat_router, create_health_router, create_models_router
from .utils import LogEvent, LogRecord, debug, info, init_logger

load_dotenv()

# Rich console for startup display
_console = Console()


def setup_logging(settings: Settings) -> dict:
    """Setup logging configuration."""
    log_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "colored_console": {
                "()": "toolcall_bridge.utils.logging.formatters.ColoredConsoleFormatter",
                "use_colors": settings.log_color,
            },
            "json": {"()": "toolcall_bridge.utils.logging.formatters.JSONFormatter"},
            "uvicorn_access": {"()": "toolcall_bridge.utils.logging.formatters.UvicornAccessFormatter"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": settings.log_level,
                "formatter": "colored_console",
                "stream": "ext://sys.stdout",
            },
            "uvicorn_access": {
                "class": "logging.StreamHandler",
                "level": "INFO",
                "formatter": "uvicorn_access",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            settings.app_name: {
                "level": settings.log_level,
                "handlers": ["console"],
                "propagate": False,
            },
            "uvicorn.access": {
                "level": "INFO",
                "handlers": ["uvicorn_access"],
                "propagate": False,
            },
        },
    }

    # Add file handler if configured
    if settings.log_file_path:
        Path(settings.log_file_path).parent.mkdir(parents=True, exist_ok=True)
        log_config["handlers"]["file"] = {
            "class": "logging.FileHandler",
            "level": settings.log_level,
            "formatter": "json",
            "filename": settings.log_file_path,
            "mode": "a",
            "encoding": "utf-8",
        }
        log_config["loggers"][settings.app_name]["handlers"].append("file")

    dictConfig(log_config)
    return log_config


def create_backend(settings: Settings) -> HttpChatBackend:
    backend_settings = settings.backend
    return HttpChatBackend(
        url=backend_settings.url,
        timeout=backend_settings.timeout,
        headers=backend_settings.headers,
        max_requests_per_minute=backend_settings.max_requests_per_minute,
        min_request_interval=backend_settings.min_request_interval,
    )


@asynccontextmanager
async def lifespan(app: fastapi.FastAPI):
    """FastAPI lifespan event handler."""
    settings: Settings = app.state.settings
    service: ChatCompletionService = app.state.service

    info(LogRecord(
        event=LogEvent.FASTAPI_STARTUP_COMPLETE.value,
        message="FastAPI application startup complete"
    ))

    monitor = service.rate_limit_monitor
    if monitor is not None and settings.rate_limit_log_interval > 0:
        monitor.start_monitoring(settings.rate_limit_log_interval)

    yield

    if monitor is not None:
        monitor.stop_monitoring()
    await service.backend.close()

    info(LogRecord(
        event=LogEvent.FASTAPI_SHUTDOWN.value,
        message="FastAPI application shutting down"
    ))


def create_app(
    config_path: Optional[str] = "config.yaml",
    settings: Optional[Settings] = None,
    backend: Optional[ChatBackend] = None,
) -> fastapi.FastAPI:
    """Create FastAPI application with isolated components."""
    local_settings = settings or Settings(config_path)

    # Initialize logging
    init_logger(local_settings.app_name)
    setup_logging(local_settings)

    local_backend = backend or create_backend(local_settings)
    service = ChatCompletionService(local_backend, local_settings)

    app = fastapi.FastAPI(
        title=local_settings.app_name,
        version=local_settings.app_version,
        description="OpenAI-compatible chat completions with emulated function calling",
        lifespan=lifespan,
    )

    # Store components in app state for access by handlers
    app.state.settings = local_settings
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=local_settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # Register routers
    app.include_router(create_chat_router(service))
    app.include_router(create_models_router(service))
    app.include_router(create_health_router(service, local_settings.app_name, local_settings.app_version))

    # Exception handlers
    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return build_openai_error_response(OpenAIErrorType.NOT_FOUND, "Not found", 404)
        return build_openai_error_response(OpenAIErrorType.INVALID_REQUEST, str(exc.detail), exc.status_code)

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        return log_and_return_error_response(exc, str(uuid.uuid4()))

    # Request logging middleware
    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time

        debug(LogRecord(
            event=LogEvent.HTTP_REQUEST.value,
            message=f"{request.method} {request.url.path}",
            data={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "process_time": round(process_time, 3),
            },
        ))

        return response

    return app


# ===== STARTUP BANNER =====

def display_startup_banner(settings: Settings):
    """Display startup banner with configuration info."""
    banner = """
══════════════════════════════════════════════════════════════════════
 ████████  ██████   ██████  ██       ██████  █████  ██      ██
    ██    ██    ██ ██    ██ ██      ██      ██   ██ ██      ██
    ██    ██    ██ ██    ██ ██      ██      ███████ ██      ██
    ██    ██    ██ ██    ██ ██      ██      ██   ██ ██      ██
    ██     ██████   ██████  ███████  ██████ ██   ██ ███████ ███████
══════════════════════════════════════════════════════════════════════
"""
    _console.print(banner, style="bold green")

    log_file_display = "Disabled"
    if settings.log_file_path:
        try:
            log_file_display = str(Path(settings.log_file_path).relative_to(PROJECT_ROOT))
        except ValueError:
            log_file_display = Path(settings.log_file_path).name

    backend_url = settings.backend.url or "not configured"
    config_text = Text.assemble(
        ("   Version       : ", "default"),
        (f"v{settings.app_version}", "bold cyan"),
        ("\n   Backend       : ", "default"),
        (backend_url, "bold green" if settings.backend.url else "bold red"),
        ("\n   Models        : ", "default"),
        (f"{len(settings.models)} listed", "default"),
        ("\n   Token Counter : ", "default"),
        (settings.token_encoder, "default"),
        ("\n   Log Level     : ", "default"),
        (settings.log_level.upper(), "yellow"),
        ("\n   Log File      : ", "default"),
        (log_file_display, "dim"),
        ("\n   Listening on  : ", "default"),
        (f"http://{settings.host}:{settings.port}", "default"),
    )

    _console.print(Panel(
        config_text,
        title=f"{settings.app_name} Configuration",
        border_style="blue",
        expand=False,
    ))
    _console.print(Rule("Starting uvicorn server ...", style="dim blue"))


# ===== COMMAND LINE INTERFACE =====

def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="toolcall-bridge")
    parser.add_argument(
        "--config",
        type=str,
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)"
    )
    parser.add_argument(
        "--port",
        type=int,
        help="Port to run the server on (overrides config file)"
    )
    parser.add_argument(
        "--host",
        type=str,
        help="Host to bind the server to (overrides config file)"
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)
    settings = Settings(args.config)

    # Apply command line overrides
    if args.port:
        settings.port = args.port
    if args.host:
        settings.host = args.host

    app = create_app(settings=settings)
    display_startup_banner(settings)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_config=setup_logging(settings),
    )


if __name__ == "__main__":
    main()
