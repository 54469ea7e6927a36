"""Reaction engine lifecycle management.

Builds the engine from settings and ties it to the FastAPI application
lifespan.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from chatreact.core.config import Settings, get_settings
from chatreact.reactions.engine import ReactionEngine
from chatreact.reactions.guard import RateLimitGuard
from chatreact.reactions.interfaces import ReactionStore, ReactionTransport
from chatreact.reactions.store import InMemoryReactionStore, SQLiteReactionStore
from chatreact.reactions.transport import (
    DryRunReactionTransport,
    WhatsAppReactionTransport,
)
from fastapi import FastAPI

logger = logging.getLogger(__name__)


def create_reaction_transport(settings: Settings) -> ReactionTransport:
    """Pick the WhatsApp transport, or the dry-run one when it cannot be used."""
    if settings.REACTIONS_DRY_RUN:
        logger.info("Reactions running in dry-run mode")
        return DryRunReactionTransport()
    if not settings.whatsapp_configured:
        logger.warning(
            "WHATSAPP_TOKEN or PHONE_NUMBER_ID not set, reactions will only be logged"
        )
        return DryRunReactionTransport()
    return WhatsAppReactionTransport.from_settings(settings)


def create_reaction_store(settings: Settings) -> ReactionStore:
    if settings.REACTION_STORE_BACKEND == "sqlite":
        settings.ensure_data_dirs()
        logger.info(f"Using SQLite reaction store at {settings.REACTION_DB_PATH}")
        return SQLiteReactionStore(settings.REACTION_DB_PATH)
    return InMemoryReactionStore(max_size=settings.REACTION_HISTORY_MAX_SIZE)


def create_reaction_engine(
    settings: Optional[Settings] = None,
    transport: Optional[ReactionTransport] = None,
    store: Optional[ReactionStore] = None,
) -> ReactionEngine:
    """Create and configure the reaction engine.

    Args:
        settings: Application settings (defaults to ``get_settings()``).
        transport: Override the transport chosen from settings.
        store: Override the store chosen from settings.

    Returns:
        Configured ReactionEngine instance.
    """
    settings = settings or get_settings()
    guard = RateLimitGuard(
        max_per_minute=settings.REACTION_MAX_PER_MINUTE,
        max_per_hour=settings.REACTION_MAX_PER_HOUR,
        message_cooldown_ms=settings.REACTION_MESSAGE_COOLDOWN_MS,
        user_cooldown_ms=settings.REACTION_USER_COOLDOWN_MS,
    )
    return ReactionEngine(
        transport=transport or create_reaction_transport(settings),
        store=store or create_reaction_store(settings),
        guard=guard,
        enabled=settings.REACTIONS_ENABLED,
        history_ttl_seconds=settings.REACTION_HISTORY_TTL_SECONDS,
        counter_ttl_seconds=settings.REACTION_COUNTER_TTL_SECONDS,
        cleanup_interval_seconds=settings.REACTION_CLEANUP_INTERVAL_SECONDS,
    )


@asynccontextmanager
async def reaction_lifespan(app: FastAPI, settings: Optional[Settings] = None):
    """Async context manager for reaction engine lifecycle.

    Usage in main.py:
        async with reaction_lifespan(app, settings):
            yield

    The engine is stored on ``app.state.reaction_engine``; an engine already
    placed there (tests do this) is reused instead of building a new one.
    """
    engine = getattr(app.state, "reaction_engine", None)
    if engine is None:
        engine = create_reaction_engine(settings)
        app.state.reaction_engine = engine
    engine.start()

    flow_keys = ", ".join(engine.scheduler.flow_keys)
    logger.info(
        f"Reaction engine initialized (enabled={engine.enabled}, flows={flow_keys})"
    )

    try:
        yield
    finally:
        await engine.aclose()
        if hasattr(app.state, "reaction_engine"):
            del app.state.reaction_engine
            logger.info("Reaction engine cleaned up")
