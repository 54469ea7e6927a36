"""Tests for ReactionCatalog: table coverage, lookups, metrics profiles, overrides."""

import pytest
from chatreact.reactions.catalog import (
    CATEGORY_KEYS,
    MetricsThresholds,
    ReactionCatalog,
    classify_metrics,
)
from chatreact.reactions.models import (
    ConversationStage,
    ReactionEmoji,
    ReactionTrigger,
    TriggerCategory,
    UserIntent,
    UserMetrics,
    UserMetricsProfile,
)


@pytest.fixture()
def catalog():
    return ReactionCatalog()


class TestCatalogTables:
    """Every category has a complete table."""

    def test_every_category_has_key_enum(self):
        assert set(CATEGORY_KEYS) == set(TriggerCategory)

    @pytest.mark.parametrize("category", list(TriggerCategory))
    def test_every_key_has_emoji(self, catalog, category):
        table = catalog.table(category)
        for member in CATEGORY_KEYS[category]:
            assert table.get(member.value), f"{category.value}/{member.value}"

    def test_table_is_a_copy(self, catalog):
        table = catalog.table(TriggerCategory.USER_INTENT)
        table["menu"] = "x"
        assert catalog.lookup(TriggerCategory.USER_INTENT, "menu") == (
            ReactionEmoji.MENU_INQUIRY.value
        )


class TestLookup:
    """Lookup by string, enum, and unknown keys."""

    def test_lookup_intent_by_string(self, catalog):
        assert catalog.lookup(TriggerCategory.USER_INTENT, "hours") == (
            ReactionEmoji.HOURS_INQUIRY.value
        )

    def test_lookup_by_enum_member(self, catalog):
        assert catalog.lookup(TriggerCategory.USER_INTENT, UserIntent.MENU) == (
            ReactionEmoji.MENU_INQUIRY.value
        )

    def test_lookup_conversation_stage(self, catalog):
        emoji = catalog.lookup(
            TriggerCategory.CONVERSATION_STAGE, ConversationStage.ORDER_COMPLETE
        )
        assert emoji == ReactionEmoji.CELEBRATION.value

    def test_unknown_key_returns_none(self, catalog):
        assert catalog.lookup(TriggerCategory.USER_INTENT, "weather") is None

    def test_missing_key_returns_none(self, catalog):
        assert catalog.lookup(TriggerCategory.GENERAL_STATE, None) is None

    def test_unknown_admin_kind_returns_none(self, catalog):
        assert catalog.lookup(TriggerCategory.ADMIN_MESSAGE_KIND, "broadcast") is None

    def test_resolve_trigger(self, catalog):
        trigger = ReactionTrigger(
            recipient="5215512345678",
            message_id="wamid.1",
            category=TriggerCategory.VALIDATION_RESULT,
            key="blocked",
        )
        assert catalog.resolve(trigger) == ReactionEmoji.BLOCKED.value


class TestMetricsProfiles:
    """Profile precedence: VIP > frequent > large order > first order."""

    @pytest.mark.parametrize(
        "metrics,expected",
        [
            (UserMetrics(order_count=10), UserMetricsProfile.VIP),
            (UserMetrics(order_count=1, total_spent=2000), UserMetricsProfile.VIP),
            (UserMetrics(order_count=12, order_total=900), UserMetricsProfile.VIP),
            (UserMetrics(order_count=5), UserMetricsProfile.FREQUENT),
            (UserMetrics(order_count=7, order_total=800), UserMetricsProfile.FREQUENT),
            (UserMetrics(order_count=2, order_total=500), UserMetricsProfile.LARGE_ORDER),
            (UserMetrics(order_count=1, order_total=600), UserMetricsProfile.LARGE_ORDER),
            (UserMetrics(order_count=1, order_total=100), UserMetricsProfile.FIRST_ORDER),
            (UserMetrics(order_count=0, order_total=100), None),
            (UserMetrics(order_count=3, total_spent=1999), None),
        ],
    )
    def test_classify(self, metrics, expected):
        assert classify_metrics(metrics) == expected

    def test_custom_thresholds(self):
        thresholds = MetricsThresholds(vip_order_count=3)
        assert classify_metrics(UserMetrics(order_count=3), thresholds) == (
            UserMetricsProfile.VIP
        )

    def test_resolve_metrics_trigger(self, catalog):
        trigger = ReactionTrigger(
            recipient="5215512345678",
            message_id="wamid.1",
            category=TriggerCategory.USER_METRICS_PROFILE,
            metrics=UserMetrics(order_count=6),
        )
        assert catalog.resolve(trigger) == ReactionEmoji.FREQUENT_CLIENT.value

    def test_metrics_without_profile_resolves_none(self, catalog):
        trigger = ReactionTrigger(
            recipient="5215512345678",
            message_id="wamid.1",
            category=TriggerCategory.USER_METRICS_PROFILE,
            metrics=UserMetrics(order_count=0),
        )
        assert catalog.resolve(trigger) is None

    def test_profile_key_lookup(self, catalog):
        assert catalog.lookup(TriggerCategory.USER_METRICS_PROFILE, "vip") == (
            ReactionEmoji.VIP_CLIENT.value
        )


class TestOverrides:
    """Per-category overrides."""

    def test_override_replaces_default(self):
        catalog = ReactionCatalog(
            overrides={TriggerCategory.USER_INTENT: {"menu": "\U0001f37d"}}
        )
        assert catalog.lookup(TriggerCategory.USER_INTENT, "menu") == "\U0001f37d"
        assert catalog.lookup(TriggerCategory.USER_INTENT, "hours") == (
            ReactionEmoji.HOURS_INQUIRY.value
        )

    def test_override_does_not_leak_to_other_instances(self):
        ReactionCatalog(overrides={TriggerCategory.USER_INTENT: {"menu": "x"}})
        assert ReactionCatalog().lookup(TriggerCategory.USER_INTENT, "menu") == (
            ReactionEmoji.MENU_INQUIRY.value
        )

    def test_override_with_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="Unknown key"):
            ReactionCatalog(overrides={TriggerCategory.USER_INTENT: {"weather": "x"}})
