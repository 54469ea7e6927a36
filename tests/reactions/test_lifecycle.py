"""Tests for building the engine from settings and the app lifespan."""

import pytest
from chatreact.reactions.lifecycle import (
    create_reaction_engine,
    create_reaction_store,
    create_reaction_transport,
    reaction_lifespan,
)
from chatreact.reactions.store import InMemoryReactionStore, SQLiteReactionStore
from chatreact.reactions.transport import (
    DryRunReactionTransport,
    WhatsAppReactionTransport,
)
from fastapi import FastAPI


class TestFactories:
    def test_dry_run_transport(self, test_settings):
        transport = create_reaction_transport(test_settings)
        assert isinstance(transport, DryRunReactionTransport)

    def test_unconfigured_whatsapp_falls_back_to_dry_run(self, test_settings):
        settings = test_settings.model_copy(update={"REACTIONS_DRY_RUN": False})
        assert isinstance(create_reaction_transport(settings), DryRunReactionTransport)

    def test_whatsapp_transport(self, test_settings):
        settings = test_settings.model_copy(
            update={
                "REACTIONS_DRY_RUN": False,
                "WHATSAPP_TOKEN": "tok",
                "PHONE_NUMBER_ID": "1",
            }
        )
        assert isinstance(create_reaction_transport(settings), WhatsAppReactionTransport)

    def test_memory_store(self, test_settings):
        assert isinstance(create_reaction_store(test_settings), InMemoryReactionStore)

    def test_sqlite_store(self, test_settings):
        settings = test_settings.model_copy(update={"REACTION_STORE_BACKEND": "sqlite"})
        store = create_reaction_store(settings)
        assert isinstance(store, SQLiteReactionStore)
        assert store.db_path == settings.REACTION_DB_PATH

    def test_engine_uses_settings_limits(self, test_settings):
        settings = test_settings.model_copy(
            update={
                "REACTION_MAX_PER_MINUTE": 3,
                "REACTION_USER_COOLDOWN_MS": 250,
                "REACTIONS_ENABLED": False,
            }
        )
        engine = create_reaction_engine(settings)
        assert engine.guard.max_per_minute == 3
        assert engine.guard.user_cooldown_ms == 250
        assert engine.enabled is False
        assert engine.history_ttl_seconds == 24 * 3600


class TestLifespan:
    @pytest.mark.asyncio()
    async def test_lifespan_creates_and_removes_engine(self, test_settings):
        app = FastAPI()
        async with reaction_lifespan(app, test_settings):
            engine = app.state.reaction_engine
            assert engine._cleanup_task is not None
        assert not hasattr(app.state, "reaction_engine")
        assert engine._cleanup_task is None
