from __future__ import annotations

"""Prometheus metrics for the GanaDash API and the collaboration relay."""

import logging
import time
from typing import Awaitable, Callable

from prometheus_client import Counter, Gauge, Histogram
from starlette.requests import Request
from starlette.responses import Response


logger = logging.getLogger("ganadash.metrics")

REQUEST_LATENCY = Histogram(
    "ganadash_request_latency_seconds",
    "HTTP request latency in seconds",
    labelnames=("method", "path", "status"),
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0),
)

RELAY_CONNECTIONS = Gauge(
    "ganadash_relay_connections",
    "Open collaboration relay sockets",
)

RELAY_EVENTS = Counter(
    "ganadash_relay_events_total",
    "Relay events received, by event name",
    labelnames=("event",),
)

AI_REQUESTS = Counter(
    "ganadash_ai_requests_total",
    "Generative AI calls by feature and outcome",
    labelnames=("feature", "outcome"),
)


def sanitize_path(path: str) -> str:
    """Coarse path label: ``/jobs/<id>`` -> ``/jobs``, ``/api/jobs/<id>`` -> ``/api/jobs``."""
    segments = [s for s in (path or "").split("?", 1)[0].split("/") if s]
    if not segments:
        return "/"
    if segments[0] == "api" and len(segments) > 1:
        return f"/api/{segments[1]}"
    return f"/{segments[0]}"


def _observe(request: Request, status_code: int, elapsed: float) -> None:
    try:
        REQUEST_LATENCY.labels(
            method=request.method,
            path=sanitize_path(request.url.path),
            status=str(status_code),
        ).observe(elapsed)
    except ValueError:
        logger.debug("Skipping latency observation for %s", request.url.path)


Endpoint = Callable[[Request], Awaitable[Response]]


def metrics_middleware_factory() -> Callable[[Request, Endpoint], Awaitable[Response]]:
    async def middleware(request: Request, call_next: Endpoint) -> Response:
        # Scrapes of the metrics endpoints are not timed
        if request.url.path.endswith("/metrics"):
            return await call_next(request)
        started = time.perf_counter()
        response = await call_next(request)
        _observe(request, response.status_code, time.perf_counter() - started)
        return response

    return middleware
