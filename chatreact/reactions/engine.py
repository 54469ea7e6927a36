"""Reaction engine: decides, rate-limits and dispatches chat reactions.

The engine is the single entry point used by the message pipeline. For every
trigger it resolves an emoji from the catalog, asks the guard whether a
reaction may be sent now, calls the transport and, on success, records the
send in the guard, the store and the metrics sink. Reactions are
best-effort: no public method raises and nothing is retried.
"""

import asyncio
import logging
from contextlib import suppress
from typing import Any, Awaitable, Dict, Mapping, Optional, Set

from chatreact.reactions.catalog import ReactionCatalog
from chatreact.reactions.flows import FlowScheduler, Sleeper
from chatreact.reactions.guard import Clock, RateLimitGuard
from chatreact.reactions.interfaces import MetricsSink, ReactionStore, ReactionTransport
from chatreact.reactions.metrics import PrometheusMetricsSink
from chatreact.reactions.models import (
    Flow,
    ReactionEvent,
    ReactionOutcome,
    ReactionTrigger,
)
from chatreact.reactions.store import (
    EMOJI_COUNTER_PREFIX,
    USER_COUNTER_PREFIX,
    InMemoryReactionStore,
)

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_TTL_SECONDS = 24 * 60 * 60
DEFAULT_COUNTER_TTL_SECONDS = 30 * 24 * 60 * 60
DEFAULT_CLEANUP_INTERVAL_SECONDS = 6 * 60 * 60


class ReactionEngine:
    """Orchestrates reaction dispatch for one process.

    A single ``asyncio.Lock`` serializes guard evaluation, guard records and
    flow-instance mutations; the flow scheduler shares it. Transport, store
    and metrics calls happen outside the lock.

    Args:
        transport: Sends reactions to the messaging platform.
        store: History and counter persistence (in-memory by default).
        metrics: Counter sink (Prometheus by default).
        catalog: Trigger to emoji tables.
        guard: Rate limiter; built with ``clock`` when omitted.
        flows: Flow definitions for the scheduler (built-ins by default).
        enabled: When False every dispatch is skipped.
        history_ttl_seconds: TTL of history entries.
        counter_ttl_seconds: TTL of analytics counters.
        cleanup_interval_seconds: Period of the purge task started by ``start``.
        clock: Millisecond clock shared by guard and scheduler.
        sleep: Coroutine used by the scheduler between flow stages.
    """

    def __init__(
        self,
        transport: ReactionTransport,
        store: Optional[ReactionStore] = None,
        metrics: Optional[MetricsSink] = None,
        catalog: Optional[ReactionCatalog] = None,
        guard: Optional[RateLimitGuard] = None,
        flows: Optional[Mapping[str, Flow]] = None,
        *,
        enabled: bool = True,
        history_ttl_seconds: int = DEFAULT_HISTORY_TTL_SECONDS,
        counter_ttl_seconds: int = DEFAULT_COUNTER_TTL_SECONDS,
        cleanup_interval_seconds: float = DEFAULT_CLEANUP_INTERVAL_SECONDS,
        clock: Optional[Clock] = None,
        sleep: Optional[Sleeper] = None,
    ):
        self.transport = transport
        self.store = store if store is not None else InMemoryReactionStore()
        self.metrics = metrics if metrics is not None else PrometheusMetricsSink()
        self.catalog = catalog or ReactionCatalog()
        self.guard = guard or RateLimitGuard(clock=clock)
        self.enabled = enabled
        self.history_ttl_seconds = history_ttl_seconds
        self.counter_ttl_seconds = counter_ttl_seconds
        self.cleanup_interval_seconds = cleanup_interval_seconds

        self._lock = asyncio.Lock()
        self.scheduler = FlowScheduler(
            self._dispatch_flow_stage,
            flows,
            lock=self._lock,
            clock=clock,
            sleep=sleep,
        )
        self._tasks: Set[asyncio.Task] = set()
        self._cleanup_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def react(self, trigger: ReactionTrigger) -> bool:
        """React to a classified trigger. Returns True if the reaction was sent."""
        if not self.enabled:
            return False
        try:
            emoji = self.catalog.resolve(trigger)
            if not emoji:
                logger.debug(
                    f"No reaction for {trigger.category.value} trigger "
                    f"on {trigger.message_id}"
                )
                return False
            event = await self._dispatch(trigger.recipient, trigger.message_id, emoji)
            return event.delivered
        except Exception:
            logger.exception(f"Unexpected error reacting to {trigger.message_id}")
            return False

    async def remove(self, recipient: str, message_id: str) -> bool:
        """Remove the reaction on a message (empty emoji)."""
        if not self.enabled:
            return False
        try:
            event = await self._dispatch(recipient, message_id, "")
            return event.delivered
        except Exception:
            logger.exception(f"Unexpected error removing reaction on {message_id}")
            return False

    async def update(
        self,
        recipient: str,
        message_id: str,
        emoji: str,
        previous_emoji: Optional[str] = None,
    ) -> bool:
        """Replace the reaction on a message with an explicit emoji.

        The platform keeps one reaction per message and sender, so sending
        the new emoji replaces the previous one.
        """
        if not self.enabled or not emoji:
            return False
        if previous_emoji:
            logger.debug(
                f"Updating reaction on {message_id}: {previous_emoji} -> {emoji}"
            )
        try:
            event = await self._dispatch(recipient, message_id, emoji)
            return event.delivered
        except Exception:
            logger.exception(f"Unexpected error updating reaction on {message_id}")
            return False

    async def start_flow(self, flow_key: str, recipient: str, message_id: str) -> bool:
        """Start a named flow on a message. Unknown flows return False."""
        if not self.enabled:
            return False
        try:
            return await self.scheduler.start_flow(flow_key, recipient, message_id)
        except Exception:
            logger.exception(f"Unexpected error starting flow {flow_key} on {message_id}")
            return False

    async def cancel_flow(self, message_id: str) -> bool:
        """Cancel the flow running on a message, if any."""
        try:
            return await self.scheduler.cancel_flow(message_id)
        except Exception:
            logger.exception(f"Unexpected error cancelling flow on {message_id}")
            return False

    def react_nowait(self, trigger: ReactionTrigger) -> asyncio.Task:
        """Schedule ``react`` without waiting for the platform."""
        return self._spawn(self.react(trigger))

    def start_flow_nowait(
        self, flow_key: str, recipient: str, message_id: str
    ) -> asyncio.Task:
        """Schedule ``start_flow`` without waiting for stage 0."""
        return self._spawn(self.start_flow(flow_key, recipient, message_id))

    async def get_stats(self, recent_limit: int = 10) -> Dict[str, Any]:
        """History statistics plus guard windows and running flows."""
        history: Dict[str, Any] = {}
        get_store_stats = getattr(self.store, "get_stats", None)
        if get_store_stats is not None:
            try:
                history = await get_store_stats(recent_limit)
            except Exception as e:
                logger.warning(f"Could not read reaction history stats: {e}")

        async with self._lock:
            rate_limits = self.guard.snapshot()
            active_flows = self.scheduler.active_flows()

        return {
            "enabled": self.enabled,
            "history": history,
            "rate_limits": rate_limits,
            "active_flows": active_flows,
            "flows": self.scheduler.flow_keys,
        }

    async def cleanup(self) -> int:
        """Purge expired history entries and counters. Returns count removed."""
        purge = getattr(self.store, "purge_expired", None)
        if purge is None:
            return 0
        try:
            removed = await purge()
        except Exception as e:
            logger.warning(f"Reaction history cleanup failed: {e}")
            return 0
        if removed:
            logger.info(f"Purged {removed} expired reaction entries")
        return removed

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the periodic cleanup task. Call from a running event loop."""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    async def aclose(self) -> None:
        """Stop background work and close the transport."""
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._cleanup_task
            self._cleanup_task = None

        pending = list(self._tasks)
        for task in pending:
            task.cancel()
        for task in pending:
            with suppress(asyncio.CancelledError):
                await task

        await self.scheduler.shutdown()

        close = getattr(self.transport, "close", None)
        if close is not None:
            try:
                await close()
            except Exception as e:
                logger.warning(f"Error closing reaction transport: {e}")

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.cleanup_interval_seconds)
            await self.cleanup()

    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ------------------------------------------------------------------
    # Dispatch path
    # ------------------------------------------------------------------

    async def _dispatch_flow_stage(
        self, recipient: str, message_id: str, emoji: str
    ) -> bool:
        # Stages of one flow replace each other on the same message faster
        # than the per-message cooldown allows.
        event = await self._dispatch(
            recipient, message_id, emoji, skip_message_cooldown=True
        )
        return event.delivered

    async def _dispatch(
        self,
        recipient: str,
        message_id: str,
        emoji: str,
        *,
        skip_message_cooldown: bool = False,
    ) -> ReactionEvent:
        async with self._lock:
            decision = self.guard.evaluate(
                recipient, message_id, skip_message_cooldown=skip_message_cooldown
            )

        if not decision:
            logger.warning(
                f"Reaction on {message_id} denied: {decision.reason.value}"
            )
            self._increment("rate_limited", emoji, decision.reason.value)
            return ReactionEvent(
                recipient=recipient,
                message_id=message_id,
                emoji=emoji,
                outcome=ReactionOutcome.RATE_LIMITED,
                reason=decision.reason,
            )

        try:
            delivered = await self.transport.send(recipient, message_id, emoji)
        except Exception:
            logger.exception(f"Reaction transport raised for {message_id}")
            delivered = False

        if not delivered:
            logger.warning(f"Reaction on {message_id} was not delivered")
            self._increment("error", emoji)
            return ReactionEvent(
                recipient=recipient,
                message_id=message_id,
                emoji=emoji,
                outcome=ReactionOutcome.ERROR,
            )

        async with self._lock:
            self.guard.record(recipient, message_id, at=decision.at)

        event = ReactionEvent(
            recipient=recipient,
            message_id=message_id,
            emoji=emoji,
            outcome=ReactionOutcome.SENT if emoji else ReactionOutcome.REMOVED,
        )
        await self._persist(event)
        self._increment(event.outcome.value, emoji)
        return event

    async def _persist(self, event: ReactionEvent) -> None:
        entry = {
            "recipient": event.recipient,
            "emoji": event.emoji,
            "timestamp": event.timestamp.isoformat(),
        }
        try:
            await self.store.record_reaction(
                event.message_id, entry, self.history_ttl_seconds
            )
        except Exception as e:
            logger.warning(f"Failed to record reaction on {event.message_id}: {e}")

        if not event.emoji:
            return
        # Counters are written even when the history write failed.
        for counter_key in (
            f"{EMOJI_COUNTER_PREFIX}{event.emoji}",
            f"{USER_COUNTER_PREFIX}{event.recipient}",
        ):
            try:
                await self.store.increment_counter(
                    counter_key, self.counter_ttl_seconds
                )
            except Exception as e:
                logger.warning(f"Failed to increment counter {counter_key}: {e}")

    def _increment(
        self, event_type: str, emoji: Optional[str] = None, reason: Optional[str] = None
    ) -> None:
        try:
            self.metrics.increment(event_type, emoji=emoji or None, reason=reason)
        except Exception as e:
            logger.warning(f"Failed to record reaction metric {event_type}: {e}")
