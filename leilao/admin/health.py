"""Admin health endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/health")
async def health(request: Request) -> dict[str, int | str | dict[str, int]]:
    start_time = getattr(request.app.state, "start_time", None)
    if start_time:
        uptime = int((datetime.now(timezone.utc) - start_time).total_seconds())
    else:
        uptime = 0
    registry = request.app.state.registry
    settings = request.app.state.settings
    counts = {protocol.value: len(endpoints) for protocol, endpoints in (await registry.all()).items()}
    return {
        "status": "healthy",
        "uptime_seconds": uptime,
        "version": request.app.version,
        "heartbeat_interval_seconds": int(settings.heartbeat.interval_seconds),
        "servers": counts,
    }
