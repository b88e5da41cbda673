import os
import time

import psutil  # type: ignore[import-untyped]
from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint that reports system resources and whether the
    activity router has been wired up.

    Returns "initializing" until the lifespan startup has finished.
    """
    cpu_percent = psutil.cpu_percent()
    memory = psutil.virtual_memory()

    router_status = "initializing"
    if getattr(request.app.state, "activity_router", None) is not None:
        router_status = "healthy"

    cache = getattr(request.app.state, "membership_cache", None)

    return {
        "status": router_status,
        "timestamp": int(time.time()),
        "build_id": os.getenv("BUILD_ID", "unknown"),
        "system": {
            "cpu_percent": cpu_percent,
            "memory_percent": memory.percent,
        },
        "services": {"router": router_status},
        "membership_cache": cache.get_stats() if cache is not None else None,
    }


@router.get("/health/live")
async def liveness_check():
    """
    Liveness probe that checks if the service is running.
    """
    return {"status": "alive"}
