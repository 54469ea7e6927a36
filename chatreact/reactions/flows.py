"""Timed multi-stage reaction flows.

A flow narrates a process on one message (order received, confirmed, on its
way, paid, completed) by replacing the reaction stage by stage. Each running
flow is a ``FlowInstance`` stamped with a generation token; starting a new
flow on the same message or cancelling it invalidates the token, and any
pending stage whose token no longer matches becomes a no-op.
"""

import asyncio
import itertools
import logging
from contextlib import suppress
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set

from chatreact.core.exceptions import UnknownFlowError
from chatreact.reactions.guard import Clock, monotonic_ms
from chatreact.reactions.metrics import record_flow_event
from chatreact.reactions.models import Flow, FlowInstance, FlowStage, ReactionEmoji

logger = logging.getLogger(__name__)

StageDispatcher = Callable[[str, str, str], Awaitable[bool]]
Sleeper = Callable[[float], Awaitable[Any]]

E = ReactionEmoji

DEFAULT_FLOWS: Dict[str, Flow] = {
    flow.flow_key: flow
    for flow in (
        Flow(
            flow_key="order_flow",
            stages=[
                FlowStage(emoji=E.ORDER_RECEIVED.value, delay_ms=0),
                FlowStage(emoji=E.ORDER_CONFIRMED.value, delay_ms=2000),
                FlowStage(emoji=E.ADDRESS_CONFIRMED.value, delay_ms=1000),
                FlowStage(emoji=E.PAYMENT_RECEIVED.value, delay_ms=1000),
                FlowStage(emoji=E.ORDER_COMPLETED.value, delay_ms=1000),
            ],
        ),
        Flow(
            flow_key="payment_flow",
            stages=[
                FlowStage(emoji=E.PAYMENT_RECEIVED.value, delay_ms=0),
                FlowStage(emoji=E.PAYMENT_PROOF.value, delay_ms=1500),
                FlowStage(emoji=E.PAYMENT_VALIDATED.value, delay_ms=2000),
                FlowStage(emoji=E.ORDER_COMPLETED.value, delay_ms=1500),
            ],
        ),
        Flow(
            flow_key="delivery_flow",
            stages=[
                FlowStage(emoji=E.LOCATION_RECEIVED.value, delay_ms=0),
                FlowStage(emoji=E.ADDRESS_CONFIRMED.value, delay_ms=1500),
                FlowStage(emoji=E.ACCESS_CODE_SAVED.value, delay_ms=1500),
                FlowStage(emoji=E.ORDER_COMPLETED.value, delay_ms=2000),
            ],
        ),
    )
}


class FlowScheduler:
    """Owns the flow definitions and the table of running flow instances.

    Args:
        dispatch: Coroutine sending one stage's emoji
            ``(recipient, message_id, emoji) -> bool``.
        flows: Flow definitions keyed by flow key (defaults to built-ins).
        lock: Lock shared with the engine; guards the instance table.
        clock: Millisecond clock.
        sleep: Coroutine used to wait between stages (seconds).
    """

    def __init__(
        self,
        dispatch: StageDispatcher,
        flows: Optional[Mapping[str, Flow]] = None,
        *,
        lock: Optional[asyncio.Lock] = None,
        clock: Optional[Clock] = None,
        sleep: Optional[Sleeper] = None,
    ):
        self._dispatch = dispatch
        self._flows: Dict[str, Flow] = dict(DEFAULT_FLOWS if flows is None else flows)
        self._lock = lock or asyncio.Lock()
        self._clock = clock or monotonic_ms
        self._sleep = sleep or asyncio.sleep
        self._instances: Dict[str, FlowInstance] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._tokens = itertools.count(1)

    @property
    def flow_keys(self) -> List[str]:
        return sorted(self._flows)

    def get_flow(self, flow_key: str) -> Flow:
        flow = self._flows.get(flow_key)
        if flow is None:
            raise UnknownFlowError(flow_key)
        return flow

    def get_instance(self, message_id: str) -> Optional[FlowInstance]:
        return self._instances.get(message_id)

    def active_flows(self) -> List[Dict[str, Any]]:
        return [
            {
                "message_id": instance.message_id,
                "flow_key": instance.flow_key,
                "stage": instance.current_stage_index,
            }
            for instance in self._instances.values()
            if instance.active
        ]

    async def start_flow(self, flow_key: str, recipient: str, message_id: str) -> bool:
        """Start ``flow_key`` on a message, replacing any flow already running.

        Stage 0 is dispatched before this returns; later stages run in a
        background task. Returns False if the flow is unknown.
        """
        flow = self._flows.get(flow_key)
        if flow is None:
            logger.debug(f"Unknown reaction flow requested: {flow_key}")
            return False

        last_index = len(flow.stages) - 1
        async with self._lock:
            previous = self._instances.pop(message_id, None)
            if previous is not None and previous.active:
                previous.active = False
                record_flow_event(previous.flow_key, "superseded")
                logger.debug(
                    f"Flow {previous.flow_key} on {message_id} superseded by {flow_key}"
                )
            instance = FlowInstance(
                message_id=message_id,
                flow_key=flow_key,
                recipient=recipient,
                generation_token=next(self._tokens),
                started_at=self._clock(),
            )
            if last_index > 0:
                self._instances[message_id] = instance
            else:
                instance.active = False

        record_flow_event(flow_key, "started")
        await self._dispatch_stage(instance, 0, flow.stages[0].emoji)

        if last_index > 0:
            self._spawn(self._run_stages(flow, instance))
        else:
            record_flow_event(flow_key, "completed")
        return True

    async def cancel_flow(self, message_id: str) -> bool:
        """Stop the flow on a message. Returns True if one was running."""
        async with self._lock:
            instance = self._instances.pop(message_id, None)
            if instance is None or not instance.active:
                return False
            instance.active = False

        record_flow_event(instance.flow_key, "cancelled")
        logger.debug(
            f"Flow {instance.flow_key} on {message_id} cancelled at stage "
            f"{instance.current_stage_index}"
        )
        return True

    async def _run_stages(self, flow: Flow, instance: FlowInstance) -> None:
        message_id = instance.message_id
        token = instance.generation_token
        offsets = flow.offsets_ms()
        last_index = len(flow.stages) - 1
        try:
            for index in range(1, last_index + 1):
                remaining_ms = instance.started_at + offsets[index] - self._clock()
                if remaining_ms > 0:
                    await self._sleep(remaining_ms / 1000.0)

                async with self._lock:
                    current = self._instances.get(message_id)
                    if (
                        current is None
                        or not current.active
                        or current.generation_token != token
                        or current.current_stage_index != index - 1
                    ):
                        logger.debug(
                            f"Skipping stale stage {index} of flow "
                            f"{flow.flow_key} on {message_id}"
                        )
                        return
                    current.current_stage_index = index
                    if index == last_index:
                        current.active = False
                        del self._instances[message_id]

                await self._dispatch_stage(current, index, flow.stages[index].emoji)

            record_flow_event(flow.flow_key, "completed")
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(f"Reaction flow {flow.flow_key} failed on {message_id}")

    async def _dispatch_stage(
        self, instance: FlowInstance, index: int, emoji: str
    ) -> bool:
        try:
            return await self._dispatch(instance.recipient, instance.message_id, emoji)
        except Exception:
            logger.exception(
                f"Dispatch of stage {index} of flow {instance.flow_key} "
                f"failed on {instance.message_id}"
            )
            return False

    def _spawn(self, coro: Awaitable[None]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def shutdown(self) -> None:
        """Cancel pending stages and forget all instances."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task
        async with self._lock:
            for instance in self._instances.values():
                instance.active = False
            self._instances.clear()
