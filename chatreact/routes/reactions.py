"""Reaction admin and integration endpoints.

Read endpoints expose history statistics and the flow table. Mutating
endpoints let upstream services hand the engine a classified trigger, remove
a reaction, or start and cancel flows; they require ``X-API-Key`` when
``ADMIN_API_KEY`` is configured.
"""

import logging
from typing import Any, Dict, List

from chatreact.core.exceptions import ServiceUnavailableError
from chatreact.core.security import require_admin_key
from chatreact.reactions.engine import ReactionEngine
from chatreact.reactions.models import ReactionTrigger
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reactions", tags=["Reactions"])


class MessageTarget(BaseModel):
    """Message a reaction or flow applies to."""

    recipient: str = Field(..., min_length=1)
    message_id: str = Field(..., min_length=1)


class ReactionResult(BaseModel):
    success: bool


class CleanupResult(BaseModel):
    success: bool
    removed: int


class FlowStageInfo(BaseModel):
    emoji: str
    delay_ms: int
    offset_ms: int


class FlowInfo(BaseModel):
    flow_key: str
    stages: List[FlowStageInfo]


class FlowListResponse(BaseModel):
    flows: List[FlowInfo]
    active: List[Dict[str, Any]]


def get_reaction_engine(request: Request) -> ReactionEngine:
    """Dependency returning the engine created by the application lifespan."""
    engine = getattr(request.app.state, "reaction_engine", None)
    if engine is None:
        raise ServiceUnavailableError("Reaction engine")
    return engine


@router.get("/stats")
async def get_reaction_stats(
    engine: ReactionEngine = Depends(get_reaction_engine),
) -> Dict[str, Any]:
    """Reaction history statistics, rate-limit windows and running flows."""
    return await engine.get_stats()


@router.post(
    "/cleanup",
    response_model=CleanupResult,
    dependencies=[Depends(require_admin_key)],
)
async def cleanup_reactions(engine: ReactionEngine = Depends(get_reaction_engine)):
    """Purge expired history entries and counters now."""
    removed = await engine.cleanup()
    logger.info(f"Manual reaction cleanup removed {removed} entries")
    return CleanupResult(success=True, removed=removed)


@router.post(
    "/trigger",
    response_model=ReactionResult,
    dependencies=[Depends(require_admin_key)],
)
async def trigger_reaction(
    trigger: ReactionTrigger,
    engine: ReactionEngine = Depends(get_reaction_engine),
):
    """React to a pre-classified trigger."""
    return ReactionResult(success=await engine.react(trigger))


@router.post(
    "/remove",
    response_model=ReactionResult,
    dependencies=[Depends(require_admin_key)],
)
async def remove_reaction(
    target: MessageTarget,
    engine: ReactionEngine = Depends(get_reaction_engine),
):
    return ReactionResult(
        success=await engine.remove(target.recipient, target.message_id)
    )


@router.get("/flows", response_model=FlowListResponse)
async def list_flows(engine: ReactionEngine = Depends(get_reaction_engine)):
    """Defined flows with their cumulative stage offsets, and running instances."""
    flows = []
    for flow_key in engine.scheduler.flow_keys:
        flow = engine.scheduler.get_flow(flow_key)
        flows.append(
            FlowInfo(
                flow_key=flow.flow_key,
                stages=[
                    FlowStageInfo(
                        emoji=stage.emoji, delay_ms=stage.delay_ms, offset_ms=offset
                    )
                    for stage, offset in zip(flow.stages, flow.offsets_ms())
                ],
            )
        )
    return FlowListResponse(flows=flows, active=engine.scheduler.active_flows())


@router.post(
    "/flows/{flow_key}/start",
    response_model=ReactionResult,
    dependencies=[Depends(require_admin_key)],
)
async def start_flow(
    flow_key: str,
    target: MessageTarget,
    engine: ReactionEngine = Depends(get_reaction_engine),
):
    """Start a flow; stage 0 is sent before the response returns."""
    # Raises UnknownFlowError, rendered as 404.
    engine.scheduler.get_flow(flow_key)
    success = await engine.start_flow(flow_key, target.recipient, target.message_id)
    return ReactionResult(success=success)


@router.delete(
    "/flows/{message_id}",
    response_model=ReactionResult,
    dependencies=[Depends(require_admin_key)],
)
async def cancel_flow(
    message_id: str,
    engine: ReactionEngine = Depends(get_reaction_engine),
):
    """Cancel the flow running on a message. ``success`` is False if none was."""
    return ReactionResult(success=await engine.cancel_flow(message_id))
