"""Health check endpoint for the licensing worker.

Reports database and Redis reachability on GET /health. Used by container
health checks and deployment scripts.
"""

import asyncio
import json
import os
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Awaitable, Callable, Optional

from src.logging import get_logger

logger = get_logger(__name__)

_start_time: float = time.time()

APP_VERSION: str = os.environ.get("APP_VERSION", "0.0.0-dev")

PingFn = Callable[[], Awaitable[bool]]


@dataclass
class DependencyHealth:
    """Health status for a single dependency."""

    status: str  # "healthy" or "unhealthy"
    response_time_ms: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"status": self.status}
        if self.response_time_ms is not None:
            result["response_time_ms"] = self.response_time_ms
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class HealthCheckResult:
    """Complete health check response."""

    status: str  # "healthy", "degraded", or "unhealthy"
    version: str
    uptime_seconds: int
    timestamp: str
    dependencies: dict[str, DependencyHealth] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "status": self.status,
            "version": self.version,
            "uptime_seconds": self.uptime_seconds,
            "timestamp": self.timestamp,
            "dependencies": {name: dep.to_dict() for name, dep in self.dependencies.items()},
        }
        if self.errors:
            result["errors"] = self.errors
        return result


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


async def check_dependency(name: str, ping: Optional[PingFn]) -> DependencyHealth:
    """
    Run one ping and time it.

    Args:
        name: Dependency name used in log events
        ping: Coroutine function returning True when reachable

    Returns:
        DependencyHealth with status and response time
    """
    if ping is None:
        return DependencyHealth(status="unhealthy", error="Not configured")

    start = time.perf_counter()
    try:
        ok = await ping()
    except Exception as e:
        logger.error("health_ping_failed", dependency=name, error=str(e))
        return DependencyHealth(
            status="unhealthy", error=f"Connection failed: {str(e)[:100]}"
        )

    response_time = int((time.perf_counter() - start) * 1000)
    if not ok:
        return DependencyHealth(
            status="unhealthy", response_time_ms=response_time, error="Not connected"
        )
    return DependencyHealth(status="healthy", response_time_ms=response_time)


async def perform_health_check(
    db_ping: Optional[PingFn] = None,
    redis_ping: Optional[PingFn] = None,
) -> HealthCheckResult:
    """Check every dependency and derive the overall status.

    All dependencies down is "unhealthy"; some down is "degraded".
    """
    result = HealthCheckResult(
        status="healthy",
        version=APP_VERSION,
        uptime_seconds=int(time.time() - _start_time),
        timestamp=_timestamp(),
    )
    result.dependencies["database"] = await check_dependency("database", db_ping)
    result.dependencies["redis"] = await check_dependency("redis", redis_ping)

    unhealthy = [name for name, dep in result.dependencies.items() if dep.status == "unhealthy"]
    if len(unhealthy) == len(result.dependencies):
        result.status = "unhealthy"
        result.errors = [f"Critical: {name} unavailable" for name in unhealthy]
    elif unhealthy:
        result.status = "degraded"

    return result


def get_http_status_code(health_status: str) -> int:
    """503 only when every dependency is down."""
    if health_status == "unhealthy":
        return 503
    return 200


class HealthCheckHandler(BaseHTTPRequestHandler):
    """Simple HTTP handler for the health check endpoint."""

    # Set during server startup
    db_ping: Optional[PingFn] = None
    redis_ping: Optional[PingFn] = None
    loop: Optional[asyncio.AbstractEventLoop] = None

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("health_http_request", message=format % args)

    def do_GET(self) -> None:
        if self.path != "/health":
            self.send_response(404)
            self.end_headers()
            self.wfile.write(b'{"error": "Not Found"}')
            return

        loop = self.loop
        if loop is None or loop.is_closed():
            logger.error("health_check_error", error="Event loop unavailable for health check")
            result = self._failed("Health check loop unavailable")
        else:
            future = asyncio.run_coroutine_threadsafe(
                perform_health_check(type(self).db_ping, type(self).redis_ping), loop
            )
            try:
                result = future.result(timeout=10)
            except Exception as e:
                future.cancel()
                logger.error("health_check_error", error=str(e))
                result = self._failed(f"Health check error: {str(e)}")

        body = json.dumps(result.to_dict()).encode("utf-8")
        self.send_response(get_http_status_code(result.status))
        self.send_header("Content-Type", "application/json")
        self.send_header("Cache-Control", "no-cache")
        self.end_headers()
        self.wfile.write(body)

    @staticmethod
    def _failed(error: str) -> HealthCheckResult:
        return HealthCheckResult(
            status="unhealthy",
            version=APP_VERSION,
            uptime_seconds=int(time.time() - _start_time),
            timestamp=_timestamp(),
            errors=[error],
        )


def start_health_server(
    host: str = "127.0.0.1",
    port: int = 8000,
    db_ping: Optional[PingFn] = None,
    redis_ping: Optional[PingFn] = None,
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> HTTPServer:
    """
    Create the HTTP server for the health endpoint.

    The caller runs ``serve_forever`` in a thread; pings execute on ``loop``.

    Returns:
        HTTPServer bound to host and port
    """
    HealthCheckHandler.db_ping = db_ping
    HealthCheckHandler.redis_ping = redis_ping
    HealthCheckHandler.loop = loop or asyncio.get_event_loop()

    server = HTTPServer((host, port), HealthCheckHandler)
    logger.info("health_server_started", host=host, port=port)
    return server
