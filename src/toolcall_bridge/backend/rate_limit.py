"""Rate-limit bookkeeping and a read-only monitor over it."""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from rich.console import Console
from rich.table import Table

from ..utils.logging import LogEvent, LogRecord, info

WINDOW_SECONDS = 60.0


@dataclass
class RateLimitInfo:
    request_count: int = 0
    window_start: float = 0.0
    last_request_time: float = 0.0
    is_limited: bool = False
    retry_after: Optional[float] = None

    def record_request(self, now: Optional[float] = None) -> None:
        now = time.time() if now is None else now
        if now - self.window_start >= WINDOW_SECONDS:
            self.request_count = 0
            self.window_start = now
        self.request_count += 1
        self.last_request_time = now


class RateLimitSource(Protocol):
    max_requests_per_minute: int
    min_request_interval: float

    def get_rate_limit_info(self) -> RateLimitInfo: ...


class RateLimitMonitor:
    """Reports utilization and wait recommendations for a backend's request window."""

    def __init__(self, source: RateLimitSource, console: Optional[Console] = None):
        self.source = source
        self.console = console or Console()
        self._monitor_task: Optional[asyncio.Task] = None

    def get_current_status(self, now: Optional[float] = None) -> Dict[str, Any]:
        now = time.time() if now is None else now
        rate_info = self.source.get_rate_limit_info()
        max_requests = self.source.max_requests_per_minute

        window_elapsed = now - rate_info.window_start
        if window_elapsed >= WINDOW_SECONDS:
            requests_in_window = 0
            time_until_reset = 0.0
        else:
            requests_in_window = rate_info.request_count
            time_until_reset = WINDOW_SECONDS - window_elapsed

        is_limited = rate_info.is_limited or requests_in_window >= max_requests

        recommended_wait = 0.0
        since_last = now - rate_info.last_request_time
        if rate_info.last_request_time and since_last < self.source.min_request_interval:
            recommended_wait = self.source.min_request_interval - since_last
        if requests_in_window >= max_requests:
            recommended_wait = max(recommended_wait, time_until_reset)
        if rate_info.is_limited and rate_info.retry_after:
            recommended_wait = max(recommended_wait, rate_info.retry_after)

        time_until_reset_ms = int(round(time_until_reset * 1000))
        recommended_wait_ms = int(round(recommended_wait * 1000))
        return {
            "requests_in_current_window": requests_in_window,
            "max_requests_per_minute": max_requests,
            "time_until_window_reset": time_until_reset_ms,
            "is_currently_limited": is_limited,
            "recommended_wait_time": recommended_wait_ms,
            "utilization_percentage": round(requests_in_window / max_requests * 100, 2) if max_requests else 0.0,
            "time_until_window_reset_minutes": round(time_until_reset_ms / 60000, 2),
            "recommended_wait_time_seconds": round(recommended_wait_ms / 1000, 2),
        }

    def get_recommendations(self, status: Optional[Dict[str, Any]] = None) -> List[str]:
        status = status or self.get_current_status()
        recommendations = []
        if status["is_currently_limited"]:
            recommendations.append(
                f"Rate limit reached: wait {status['recommended_wait_time_seconds']}s before the next request"
            )
        elif status["utilization_percentage"] >= 80:
            recommendations.append("Approaching the rate limit: slow down request frequency")
        if status["recommended_wait_time"] > 0 and not status["is_currently_limited"]:
            recommendations.append(
                f"Space requests out: wait {status['recommended_wait_time_seconds']}s before the next request"
            )
        recommendations.extend([
            "Use request batching to combine related prompts into fewer calls",
            "Implement exponential backoff when the backend answers with 429",
            "Monitor utilization with the /rate-limit endpoint during heavy use",
        ])
        return recommendations

    def print_status(self) -> None:
        status = self.get_current_status()
        table = Table(title="Rate Limit Status", show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="bold")
        table.add_row(
            "Requests in window",
            f"{status['requests_in_current_window']}/{status['max_requests_per_minute']}",
        )
        table.add_row("Utilization", f"{status['utilization_percentage']}%")
        table.add_row("Window resets in", f"{status['time_until_window_reset_minutes']} min")
        table.add_row("Currently limited", "yes" if status["is_currently_limited"] else "no")
        table.add_row("Recommended wait", f"{status['recommended_wait_time_seconds']}s")
        self.console.print(table)

    def print_recommendations(self) -> None:
        self.console.print("[bold]Recommendations[/bold]")
        for recommendation in self.get_recommendations():
            self.console.print(f"  • {recommendation}")

    async def _monitor_loop(self, interval_seconds: float) -> None:
        while True:
            status = self.get_current_status()
            info(
                LogRecord(
                    event=LogEvent.RATE_LIMIT_STATUS.value,
                    message=(
                        f"Backend utilization {status['utilization_percentage']}% "
                        f"({status['requests_in_current_window']}/{status['max_requests_per_minute']})"
                    ),
                    data=status,
                )
            )
            await asyncio.sleep(interval_seconds)

    def start_monitoring(self, interval_seconds: float = 30.0) -> None:
        if self.is_monitoring:
            return
        self._monitor_task = asyncio.get_running_loop().create_task(self._monitor_loop(interval_seconds))
        info(
            LogRecord(
                event=LogEvent.RATE_LIMIT_MONITOR_STARTED.value,
                message=f"Rate limit monitoring started (every {interval_seconds}s)",
            )
        )

    def stop_monitoring(self) -> None:
        if self._monitor_task is None:
            return
        self._monitor_task.cancel()
        self._monitor_task = None
        info(
            LogRecord(
                event=LogEvent.RATE_LIMIT_MONITOR_STOPPED.value,
                message="Rate limit monitoring stopped",
            )
        )

    @property
    def is_monitoring(self) -> bool:
        return self._monitor_task is not None and not self._monitor_task.done()
