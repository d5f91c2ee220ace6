"""Local client administration endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from chatchain.schemas.publish_config import Configured

from ..dependencies import CurrentUserDep, EngineDep

router = APIRouter(prefix="/system", tags=["system"])


def _publish_status(engine: EngineDep) -> dict[str, Any]:
    store = engine.content_store
    return {
        "mode": "demo" if store.demo_mode else "configured",
        "requests": store.metrics.request_count,
        "fallbacks": store.metrics.fallback_count,
    }


@router.get("/publish-config")
async def get_publish_config(_: CurrentUserDep, engine: EngineDep) -> dict[str, Any]:
    """Report whether messages are archived for real or in demo mode."""
    return _publish_status(engine)


@router.put("/publish-config")
async def set_publish_config(
    config: Configured,
    _: CurrentUserDep,
    engine: EngineDep,
) -> dict[str, Any]:
    """Store pinning credentials and switch to real publishing."""
    engine.configure_publishing(config)
    return _publish_status(engine)


@router.delete("/publish-config")
async def reset_publish_config(_: CurrentUserDep, engine: EngineDep) -> dict[str, Any]:
    """Forget stored credentials."""
    engine.reset_publishing()
    return _publish_status(engine)


@router.delete("/cache")
async def clear_message_cache(_: CurrentUserDep, engine: EngineDep) -> dict[str, str]:
    """Drop the local message cache; the remote ledger is untouched."""
    engine.clear_cache()
    return {"status": "cache_cleared"}
