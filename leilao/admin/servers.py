"""Expose the worker endpoints currently known to the registry."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request

from ..registry.registry import ServiceRegistry

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_registry(request: Request) -> ServiceRegistry:
    return request.app.state.registry


@router.get("/servers")
async def servers(registry: ServiceRegistry = Depends(_get_registry)) -> dict[str, list[dict[str, Any]]]:
    inventory: dict[str, list[dict[str, Any]]] = {}
    for protocol, endpoints in (await registry.all()).items():
        inventory[protocol.value] = [
            {
                "host": endpoint.host,
                "port": endpoint.port,
                "address": endpoint.describe(),
                "status": "active",
            }
            for endpoint in endpoints
        ]
    return inventory
