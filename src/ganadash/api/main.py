from __future__ import annotations

import logging
import os
from datetime import UTC, datetime

from dotenv import load_dotenv
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from .realtime import router as realtime_router
from .routers.auth import router as auth_router
from .routers.content import router as content_router
from .routers.diag import router as diag_router
from .routers.jobs import router as jobs_router
from .routers.logs import router as logs_router
from .routers.reservations import router as reservations_router
from .routers.sessions import router as sessions_router
from .routers.uploads import router as uploads_router
from .routers.webhooks import router as webhooks_router
from .routers.websites import router as websites_router
from ..infrastructure.mongo import mongo_enabled
from ..observability.metrics import metrics_middleware_factory

load_dotenv()  # .env may carry JWT_SECRET, MONGO_URL, GEMINI_API_KEY, ...

logger = logging.getLogger("ganadash.api")

API_NAME = "GanaDash API"
API_VERSION = "0.1.0"

app = FastAPI(title=API_NAME, version=API_VERSION)

# Observability: request latency histogram
app.middleware("http")(metrics_middleware_factory())

ROUTERS = (
    auth_router,
    sessions_router,
    websites_router,
    jobs_router,
    reservations_router,
    webhooks_router,
    uploads_router,
    content_router,
    logs_router,
    diag_router,
    realtime_router,
)

for r in ROUTERS:
    app.include_router(r)
# Same routers under /api for the dashboard's fetch helpers
for r in ROUTERS:
    app.include_router(r, prefix="/api")


def _cors_origins() -> list[str]:
    raw = os.getenv("GANADASH_CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
    return [o.strip() for o in raw.split(",") if o.strip()]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def _health_payload() -> dict:
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        "components": {
            "api": "ok",
            "store": "mongo" if mongo_enabled() else "in-memory",
        },
    }


@app.get("/")
def root():
    return {"name": API_NAME, "version": API_VERSION}


@app.get("/health")
def health():
    return _health_payload()


@app.get("/metrics")
def metrics() -> Response:
    # Expose Prometheus metrics
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)


# API-prefixed convenience routes
@app.get("/api")
def api_root():
    return {"name": API_NAME, "version": API_VERSION}


@app.get("/api/health")
def api_health():
    return _health_payload()


@app.get("/api/metrics")
def api_metrics() -> Response:
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
