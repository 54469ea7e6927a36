"""Static mapping from trigger categories to reaction emoji."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional, Type, Union

from chatreact.reactions.models import (
    AdminMessageKind,
    ConversationStage,
    GeneralState,
    OrderFlowStage,
    ReactionEmoji,
    ReactionTrigger,
    TriggerCategory,
    UserIntent,
    UserMetrics,
    UserMetricsProfile,
    ValidationResult,
)

logger = logging.getLogger(__name__)

E = ReactionEmoji

ORDER_FLOW_REACTIONS: Dict[OrderFlowStage, str] = {
    OrderFlowStage.RECEIVED: E.ORDER_RECEIVED.value,
    OrderFlowStage.CONFIRMED: E.ORDER_CONFIRMED.value,
    OrderFlowStage.ADDRESS_SAVED: E.ADDRESS_CONFIRMED.value,
    OrderFlowStage.LOCATION_RECEIVED: E.LOCATION_RECEIVED.value,
    OrderFlowStage.ACCESS_CODE_SAVED: E.ACCESS_CODE_SAVED.value,
    OrderFlowStage.PAYMENT_RECEIVED: E.PAYMENT_RECEIVED.value,
    OrderFlowStage.PAYMENT_PROOF: E.PAYMENT_PROOF.value,
    OrderFlowStage.CASH_CONFIRMED: E.CASH_CONFIRMED.value,
    OrderFlowStage.VALIDATED: E.PAYMENT_VALIDATED.value,
    OrderFlowStage.COMPLETED: E.ORDER_COMPLETED.value,
    OrderFlowStage.ERROR: E.ORDER_ERROR.value,
    OrderFlowStage.CELEBRATION: E.CELEBRATION.value,
}

CONVERSATION_STAGE_REACTIONS: Dict[ConversationStage, str] = {
    ConversationStage.AWAITING_ADDRESS: E.ORDER_CONFIRMED.value,
    ConversationStage.AWAITING_LOCATION_CONFIRMATION: E.ADDRESS_CONFIRMED.value,
    ConversationStage.AWAITING_ACCESS_CODE_INFO: E.LOCATION_RECEIVED.value,
    ConversationStage.AWAITING_PAYMENT_METHOD: E.ACCESS_CODE_SAVED.value,
    ConversationStage.AWAITING_CASH_DENOMINATION: E.PAYMENT_RECEIVED.value,
    ConversationStage.AWAITING_PAYMENT_PROOF: E.PAYMENT_RECEIVED.value,
    ConversationStage.ORDER_COMPLETE: E.CELEBRATION.value,
}

INTENT_REACTIONS: Dict[UserIntent, str] = {
    UserIntent.MENU: E.MENU_INQUIRY.value,
    UserIntent.PRICE: E.PRICE_INQUIRY.value,
    UserIntent.HOURS: E.HOURS_INQUIRY.value,
    UserIntent.DELIVERY: E.DELIVERY_INQUIRY.value,
    UserIntent.PROMO: E.PROMO_INQUIRY.value,
    UserIntent.GREETING: E.GREETING.value,
    UserIntent.FAREWELL: E.FAREWELL.value,
}

VALIDATION_REACTIONS: Dict[ValidationResult, str] = {
    ValidationResult.VALID: E.ORDER_COMPLETED.value,
    ValidationResult.SUSPICIOUS: E.WARNING.value,
    ValidationResult.BLOCKED: E.BLOCKED.value,
    ValidationResult.VERIFIED: E.VERIFIED.value,
}

ADMIN_REACTIONS: Dict[AdminMessageKind, str] = {
    AdminMessageKind.NOTIFICATION: E.ADMIN_NOTIFICATION.value,
    AdminMessageKind.SECURITY: E.SECURITY_ALERT.value,
    AdminMessageKind.REPORT: E.REPORT.value,
    AdminMessageKind.COMMAND: E.ADMIN_COMMAND.value,
}

GENERAL_STATE_REACTIONS: Dict[GeneralState, str] = {
    GeneralState.PROCESSING: E.ORDER_RECEIVED.value,
    GeneralState.SUCCESS: E.ORDER_COMPLETED.value,
    GeneralState.ERROR: E.ORDER_ERROR.value,
    GeneralState.WARNING: E.WARNING.value,
    GeneralState.INFO: E.INFO.value,
    GeneralState.CELEBRATION: E.CELEBRATION.value,
    GeneralState.DOCUMENT: E.DOCUMENT.value,
    GeneralState.SAVE: E.SAVE.value,
    GeneralState.REMINDER: E.REMINDER.value,
}

METRICS_PROFILE_REACTIONS: Dict[UserMetricsProfile, str] = {
    UserMetricsProfile.VIP: E.VIP_CLIENT.value,
    UserMetricsProfile.FREQUENT: E.FREQUENT_CLIENT.value,
    UserMetricsProfile.LARGE_ORDER: E.LARGE_ORDER.value,
    UserMetricsProfile.FIRST_ORDER: E.FIRST_ORDER.value,
}

# Key enum and table per category; every TriggerCategory must appear here.
CATEGORY_KEYS: Dict[TriggerCategory, Type[Enum]] = {
    TriggerCategory.ORDER_FLOW_STAGE: OrderFlowStage,
    TriggerCategory.CONVERSATION_STAGE: ConversationStage,
    TriggerCategory.USER_INTENT: UserIntent,
    TriggerCategory.VALIDATION_RESULT: ValidationResult,
    TriggerCategory.ADMIN_MESSAGE_KIND: AdminMessageKind,
    TriggerCategory.GENERAL_STATE: GeneralState,
    TriggerCategory.USER_METRICS_PROFILE: UserMetricsProfile,
}

DEFAULT_REACTION_TABLES: Dict[TriggerCategory, Mapping[Enum, str]] = {
    TriggerCategory.ORDER_FLOW_STAGE: ORDER_FLOW_REACTIONS,
    TriggerCategory.CONVERSATION_STAGE: CONVERSATION_STAGE_REACTIONS,
    TriggerCategory.USER_INTENT: INTENT_REACTIONS,
    TriggerCategory.VALIDATION_RESULT: VALIDATION_REACTIONS,
    TriggerCategory.ADMIN_MESSAGE_KIND: ADMIN_REACTIONS,
    TriggerCategory.GENERAL_STATE: GENERAL_STATE_REACTIONS,
    TriggerCategory.USER_METRICS_PROFILE: METRICS_PROFILE_REACTIONS,
}


@dataclass(frozen=True)
class MetricsThresholds:
    """Thresholds for user metrics profiles."""

    vip_order_count: int = 10
    vip_total_spent: float = 2000.0
    frequent_order_count: int = 5
    large_order_total: float = 500.0


def classify_metrics(
    metrics: UserMetrics, thresholds: Optional[MetricsThresholds] = None
) -> Optional[UserMetricsProfile]:
    """Pick the profile for a metrics snapshot.

    Rules are checked in a fixed order and the first match wins:
    VIP > frequent > large order > first order.
    """
    t = thresholds or MetricsThresholds()
    if (
        metrics.order_count >= t.vip_order_count
        or metrics.total_spent >= t.vip_total_spent
    ):
        return UserMetricsProfile.VIP
    if metrics.order_count >= t.frequent_order_count:
        return UserMetricsProfile.FREQUENT
    if metrics.order_total >= t.large_order_total:
        return UserMetricsProfile.LARGE_ORDER
    if metrics.order_count == 1:
        return UserMetricsProfile.FIRST_ORDER
    return None


class ReactionCatalog:
    """Looks up the emoji for a trigger category and key.

    Args:
        overrides: Optional per-category ``{key: emoji}`` entries merged over
            the default tables. Keys must belong to the category's key enum.
        thresholds: Metrics profile thresholds.

    Raises:
        ValueError: On construction, if a category has no table or an override
            names an unknown key.
    """

    def __init__(
        self,
        overrides: Optional[Mapping[TriggerCategory, Mapping[str, str]]] = None,
        thresholds: Optional[MetricsThresholds] = None,
    ):
        self.thresholds = thresholds or MetricsThresholds()
        self._tables: Dict[TriggerCategory, Dict[Enum, str]] = {
            category: dict(table)
            for category, table in DEFAULT_REACTION_TABLES.items()
        }

        missing = [c.value for c in TriggerCategory if c not in self._tables]
        if missing:
            raise ValueError(f"No reaction table for categories: {missing}")

        for category, entries in (overrides or {}).items():
            category = TriggerCategory(category)
            key_enum = CATEGORY_KEYS[category]
            for raw_key, emoji in entries.items():
                try:
                    key = key_enum(raw_key)
                except ValueError as e:
                    raise ValueError(
                        f"Unknown key '{raw_key}' for category '{category.value}'"
                    ) from e
                self._tables[category][key] = emoji

    def lookup(
        self,
        category: TriggerCategory,
        key: Union[str, Enum, UserMetrics, None],
    ) -> Optional[str]:
        """Return the emoji for ``key`` in ``category``, or None if unmapped."""
        if category == TriggerCategory.USER_METRICS_PROFILE and isinstance(
            key, UserMetrics
        ):
            profile = classify_metrics(key, self.thresholds)
            if profile is None:
                logger.debug(f"No metrics profile matched: {key}")
                return None
            return self._tables[category].get(profile)

        if key is None:
            logger.debug(f"Missing key for reaction category {category.value}")
            return None

        key_enum = CATEGORY_KEYS[category]
        try:
            member = key_enum(key.value if isinstance(key, Enum) else key)
        except ValueError:
            logger.debug(f"No reaction defined for {category.value} key: {key}")
            return None
        return self._tables[category].get(member)

    def resolve(self, trigger: ReactionTrigger) -> Optional[str]:
        """Return the emoji for a trigger, or None when nothing applies."""
        if (
            trigger.category == TriggerCategory.USER_METRICS_PROFILE
            and trigger.metrics is not None
        ):
            return self.lookup(trigger.category, trigger.metrics)
        return self.lookup(trigger.category, trigger.key)

    def table(self, category: TriggerCategory) -> Dict[str, str]:
        """Copy of one category table keyed by plain strings."""
        return {key.value: emoji for key, emoji in self._tables[category].items()}
