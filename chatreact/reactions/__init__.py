"""Reaction dispatch for chat messages.

This package provides:
- ReactionEngine: catalog lookup, rate limiting, dispatch and bookkeeping
- ReactionCatalog: trigger category/key to emoji tables
- RateLimitGuard: sliding windows and cooldowns required by the platform
- FlowScheduler: timed multi-stage reaction flows
- Transports and stores for the WhatsApp Cloud API and reaction history

Example usage:
    from chatreact.reactions import ReactionTrigger, TriggerCategory
    from chatreact.reactions import create_reaction_engine

    engine = create_reaction_engine(settings)
    await engine.react(
        ReactionTrigger(
            recipient="5215512345678",
            message_id="wamid.abc",
            category=TriggerCategory.USER_INTENT,
            key="menu",
        )
    )
    await engine.start_flow("order_flow", "5215512345678", "wamid.def")
"""

from chatreact.reactions.catalog import (
    MetricsThresholds,
    ReactionCatalog,
    classify_metrics,
)
from chatreact.reactions.engine import ReactionEngine
from chatreact.reactions.flows import DEFAULT_FLOWS, FlowScheduler
from chatreact.reactions.guard import RateLimitGuard
from chatreact.reactions.interfaces import MetricsSink, ReactionStore, ReactionTransport
from chatreact.reactions.lifecycle import create_reaction_engine, reaction_lifespan
from chatreact.reactions.metrics import PrometheusMetricsSink
from chatreact.reactions.models import (
    AdminMessageKind,
    ConversationStage,
    Decision,
    DecisionReason,
    Flow,
    FlowInstance,
    FlowStage,
    GeneralState,
    OrderFlowStage,
    ReactionEmoji,
    ReactionEvent,
    ReactionOutcome,
    ReactionTrigger,
    TriggerCategory,
    UserIntent,
    UserMetrics,
    UserMetricsProfile,
    ValidationResult,
)
from chatreact.reactions.store import InMemoryReactionStore, SQLiteReactionStore
from chatreact.reactions.transport import (
    DryRunReactionTransport,
    WhatsAppReactionTransport,
)

__all__ = [
    # Engine
    "ReactionEngine",
    "RateLimitGuard",
    "FlowScheduler",
    "DEFAULT_FLOWS",
    # Catalog
    "ReactionCatalog",
    "MetricsThresholds",
    "classify_metrics",
    # Interfaces and implementations
    "ReactionTransport",
    "ReactionStore",
    "MetricsSink",
    "WhatsAppReactionTransport",
    "DryRunReactionTransport",
    "InMemoryReactionStore",
    "SQLiteReactionStore",
    "PrometheusMetricsSink",
    # Models
    "AdminMessageKind",
    "ConversationStage",
    "Decision",
    "DecisionReason",
    "Flow",
    "FlowInstance",
    "FlowStage",
    "GeneralState",
    "OrderFlowStage",
    "ReactionEmoji",
    "ReactionEvent",
    "ReactionOutcome",
    "ReactionTrigger",
    "TriggerCategory",
    "UserIntent",
    "UserMetrics",
    "UserMetricsProfile",
    "ValidationResult",
    # Lifecycle
    "create_reaction_engine",
    "reaction_lifespan",
]
