"""FastAPI control surface: health probes, pause/resume and the manual test."""

from __future__ import annotations

import time
from datetime import timedelta
from typing import TYPE_CHECKING

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse

from .models import HealthStatus, ManualTestResult, PauseStatus, ServiceStatus

# One year.
MAX_PAUSE_MINUTES = 525_600

if TYPE_CHECKING:
    from .service import ForwarderService


def create_control_app(service: ForwarderService) -> FastAPI:
    """Build the FastAPI app exposed by a running :class:`ForwarderService`.

    ``/health`` and ``/ready`` serve liveness/readiness probes; the pause
    and test routes are the operator actions, each acknowledging only its
    own immediate outcome.
    """
    app = FastAPI(title=f"{service.config.name} control", docs_url=None, redoc_url=None)

    @app.get("/health")
    async def health() -> JSONResponse:
        details = await service.health_details()
        status = HealthStatus(
            service_name=service.config.name,
            status=service.status,
            uptime_seconds=time.monotonic() - service.start_time,
            pause=service.pause_gate.status(),
            details=details,
        )
        code = 200 if service.status in (ServiceStatus.RUNNING, ServiceStatus.STARTING) else 503
        return JSONResponse(content=status.model_dump(mode="json"), status_code=code)

    @app.get("/ready")
    async def ready() -> JSONResponse:
        is_ready = service.status == ServiceStatus.RUNNING
        return JSONResponse(
            content={"ready": is_ready},
            status_code=200 if is_ready else 503,
        )

    @app.get("/pause")
    async def pause_status() -> PauseStatus:
        return service.pause_gate.status()

    @app.post("/pause")
    async def pause(
        minutes: float | None = Query(
            default=None,
            gt=0,
            le=MAX_PAUSE_MINUTES,
            description="Pause length in minutes",
        ),
    ) -> PauseStatus:
        duration = None if minutes is None else timedelta(minutes=minutes)
        try:
            service.pause_gate.pause(duration)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return service.pause_gate.status()

    @app.post("/resume")
    async def resume() -> PauseStatus:
        service.pause_gate.resume()
        return service.pause_gate.status()

    @app.post("/test")
    async def manual_test() -> JSONResponse:
        result: ManualTestResult = await service.run_manual_test()
        return JSONResponse(
            content=result.model_dump(mode="json"),
            status_code=200 if result.ok else 409,
        )

    return app
