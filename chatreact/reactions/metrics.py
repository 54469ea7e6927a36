"""Prometheus metrics for reaction dispatch and flows."""

import logging
from typing import Optional

from prometheus_client import Counter

logger = logging.getLogger(__name__)

REACTION_EVENT_TYPES = frozenset({"sent", "removed", "rate_limited", "error"})

REACTIONS_TOTAL = Counter(
    "chat_reactions_total",
    "Reaction dispatch attempts by event type",
    ["event_type", "emoji"],
)
REACTIONS_RATE_LIMITED = Counter(
    "chat_reactions_rate_limited_total",
    "Reactions denied by the rate-limit guard",
    ["reason"],
)
REACTION_FLOW_EVENTS = Counter(
    "chat_reaction_flow_events_total",
    "Reaction flow lifecycle events",
    ["flow_key", "event"],
)


def record_flow_event(flow_key: str, event: str) -> None:
    """Record a flow lifecycle event (started, superseded, cancelled, completed)."""
    try:
        REACTION_FLOW_EVENTS.labels(flow_key=flow_key, event=event).inc()
    except Exception as e:
        logger.debug(f"Could not record flow metric: {e}")


class PrometheusMetricsSink:
    """MetricsSink backed by process-wide Prometheus counters."""

    def increment(
        self,
        event_type: str,
        emoji: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        if event_type not in REACTION_EVENT_TYPES:
            logger.warning(f"Ignoring unknown reaction metric type: {event_type}")
            return
        REACTIONS_TOTAL.labels(event_type=event_type, emoji=emoji or "none").inc()
        if event_type == "rate_limited":
            REACTIONS_RATE_LIMITED.labels(reason=reason or "unknown").inc()
