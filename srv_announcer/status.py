from __future__ import annotations

import logging
from threading import Thread

import uvicorn
from fastapi import FastAPI, Query

from . import __version__
from .models import EventOut, SRVRecordSpec, StatusResponse
from .runtime import RuntimeState

logger = logging.getLogger(__name__)


def create_app(runtime: RuntimeState, spec: SRVRecordSpec, record_name: str, dry_run: bool = False) -> FastAPI:
    """Read-only status API for a running announcer."""
    app = FastAPI(title="srv-announcer", version=__version__)

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/status", response_model=StatusResponse)
    def status() -> StatusResponse:
        return StatusResponse(record_name=record_name, record=spec, dry_run=dry_run, **runtime.snapshot())

    @app.get("/events", response_model=list[EventOut])
    def events(limit: int = Query(50, ge=1, le=1000)) -> list[dict]:
        return runtime.latest_events(limit)

    return app


class StatusServer:
    """Runs uvicorn on a daemon thread so it never blocks shutdown."""

    def __init__(self, app: FastAPI, host: str, port: int):
        config = uvicorn.Config(app, host=host, port=port, log_config=None, access_log=False)
        self.server = uvicorn.Server(config)
        self.host = host
        self.port = port
        self._thr: Thread | None = None

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._thr = Thread(target=self.server.run, name="status-api", daemon=True)
        self._thr.start()
        logger.info("Status API listening on %s:%d", self.host, self.port)

    def stop(self, timeout_s: float = 5.0) -> None:
        self.server.should_exit = True
        if self._thr:
            self._thr.join(timeout_s)
