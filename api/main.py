from __future__ import annotations

import logging
import threading
import time
from collections import deque
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from config import Settings, get_settings
from logging_setup import setup_logging
from models import LatencyStats, QuoteRecord, UpdateResponse, dump_quote
from process import STAGE_APPENDING, STAGE_CANCELLED, CycleError, StatsSnapshot, UpdateOrchestrator
from scheduler import UpdateScheduler
from scrapers.common import utc_now_iso
from scrapers.types import Quote
from storage import SeriesStore, build_store

MAX_LATENCY_SAMPLES = 1000

ERROR_STATUS_BY_STAGE = {
    STAGE_CANCELLED: 504,
    STAGE_APPENDING: 500,
}

logger = logging.getLogger(__name__)


class ApiMetrics:
    """Request counters and a rolling window of request latencies."""

    def __init__(self, max_samples: int = MAX_LATENCY_SAMPLES) -> None:
        self._lock = threading.Lock()
        self._latencies_ms: deque[float] = deque(maxlen=max_samples)
        self.calls = 0
        self.errors = 0

    def record(self, elapsed_ms: float, failed: bool) -> None:
        with self._lock:
            self.calls += 1
            if failed:
                self.errors += 1
            self._latencies_ms.append(elapsed_ms)

    def latency_stats(self) -> LatencyStats:
        with self._lock:
            samples = list(self._latencies_ms)
        if not samples:
            return LatencyStats()
        total = sum(samples)
        return LatencyStats(
            count=len(samples),
            avg_ms=round(total / len(samples), 3),
            max_ms=round(max(samples), 3),
            min_ms=round(min(samples), 3),
            total_ms=round(total, 3),
        )


def last_update(stats: StatsSnapshot, latest: Quote | None) -> str | None:
    """Last successful cycle in this process, else the newest stored observation."""
    if stats.last_update is not None:
        return stats.last_update
    return latest.observed_at if latest is not None else None


def create_app(
    settings: Settings | None = None,
    store: SeriesStore | None = None,
    orchestrator: UpdateOrchestrator | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    if orchestrator is None:
        orchestrator = UpdateOrchestrator(store or build_store(settings), settings)
    store = orchestrator.store

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler: UpdateScheduler | None = None
        if settings.SCHEDULER_ENABLED:
            scheduler = UpdateScheduler(orchestrator, cron=settings.UPDATE_SCHEDULE_CRON)
            scheduler.start(run_immediately=settings.RUN_ON_STARTUP)
        app.state.scheduler = scheduler
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.shutdown(wait=False)

    app = FastAPI(title="Carbon Price API", version=settings.APP_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.orchestrator = orchestrator
    app.state.metrics = ApiMetrics()
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.middleware("http")
    async def record_latency(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        if request.url.path.startswith("/api/"):
            elapsed_ms = (time.perf_counter() - start) * 1000
            app.state.metrics.record(elapsed_ms, failed=response.status_code >= 400)
        return response

    @app.get("/healthz")
    def healthz() -> dict:
        return {"status": "ok", "time": utc_now_iso()}

    @app.get("/health")
    def health() -> dict:
        latest = store.latest()
        stats = orchestrator.stats.snapshot()
        return {
            "status": "ok" if latest is not None else "no_data",
            "system": {
                "uptime_seconds": round(time.monotonic() - app.state.started_at, 3),
                "version": settings.APP_VERSION,
            },
            "data": {
                "lastUpdate": last_update(stats, latest),
                "hasData": latest is not None,
            },
        }

    @app.get("/metrics")
    def metrics() -> dict:
        latest = store.latest()
        stats = orchestrator.stats.snapshot()
        api_metrics: ApiMetrics = app.state.metrics
        return {
            "timestamp": utc_now_iso(),
            "system": {
                "uptime_seconds": round(time.monotonic() - app.state.started_at, 3),
                "version": settings.APP_VERSION,
            },
            "api": {
                "calls": api_metrics.calls,
                "errors": api_metrics.errors,
                "latency": api_metrics.latency_stats().model_dump(),
            },
            "data": {
                "lastUpdate": last_update(stats, latest),
                "hasData": latest is not None,
                "records": len(store),
                "updateCount": stats.update_count,
                "errorCount": stats.error_count,
                "lastError": stats.last_error,
            },
        }

    @app.get("/api/carbon-price")
    def carbon_price_latest() -> dict:
        latest = store.latest()
        if latest is None:
            raise HTTPException(status_code=404, detail="No price info available")
        return dump_quote(latest)

    @app.get("/api/carbon-price/history")
    def carbon_price_history() -> list[dict]:
        return [dump_quote(q) for q in store.history()]

    @app.post("/api/carbon-price/update")
    def carbon_price_update(timeout: float | None = Query(default=None, gt=0)) -> dict:
        logger.info("Received manual update request")
        deadline = time.monotonic() + timeout if timeout is not None else None
        try:
            record = orchestrator.run_update_cycle(deadline=deadline)
        except CycleError as err:
            status_code = ERROR_STATUS_BY_STAGE.get(err.stage, 502)
            raise HTTPException(status_code=status_code, detail={"error": str(err), "stage": err.stage}) from err
        response = UpdateResponse(message="Price info updated", data=QuoteRecord.from_quote(record))
        return response.model_dump(mode="json", by_alias=True)

    return app


def run() -> None:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_DIR)
    uvicorn.run(create_app(settings), host=settings.API_HOST, port=settings.API_PORT)


if __name__ == "__main__":
    run()
