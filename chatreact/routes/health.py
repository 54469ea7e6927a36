import time

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint reporting reaction engine status.

    Returns "initializing" until the lifespan has created the engine.
    """
    engine = getattr(request.app.state, "reaction_engine", None)
    if engine is None:
        engine_status = "initializing"
    elif not engine.enabled:
        engine_status = "disabled"
    else:
        engine_status = "healthy"

    overall_status = "initializing" if engine_status == "initializing" else "healthy"

    return {
        "status": overall_status,
        "timestamp": int(time.time()),
        "services": {"reactions": engine_status},
    }


@router.get("/health/live")
async def liveness_check():
    """
    Liveness probe that checks if the service is running.
    """
    return {"status": "alive"}
