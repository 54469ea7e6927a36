"""Data models for the reaction engine.

Enums for trigger categories and their keys, the typed trigger handed over by
upstream classifiers, guard decisions, dispatch events, and flow definitions.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# =============================================================================
# Emoji constants
# =============================================================================


class ReactionEmoji(str, Enum):
    """Emoji vocabulary used by the catalog and the built-in flows."""

    # Order flow
    ORDER_RECEIVED = "\u23f3"  # ⏳
    ORDER_CONFIRMED = "\U0001f6d2"  # 🛒
    ORDER_COMPLETED = "\u2705"  # ✅
    ORDER_ERROR = "\u274c"  # ❌
    ORDER_UPDATED = "\U0001f504"  # 🔄

    # Delivery
    ADDRESS_CONFIRMED = "\U0001f69a"  # 🚚
    LOCATION_RECEIVED = "\U0001f4cd"  # 📍
    ACCESS_CODE_SAVED = "\U0001f3e0"  # 🏠

    # Payment
    PAYMENT_RECEIVED = "\U0001f4b0"  # 💰
    PAYMENT_PROOF = "\U0001f4f8"  # 📸
    CASH_CONFIRMED = "\U0001f4b5"  # 💵
    PAYMENT_VALIDATED = "\u2714\ufe0f"  # ✔️

    # General states
    WARNING = "\u26a0\ufe0f"  # ⚠️
    INFO = "\u2139\ufe0f"  # ℹ️
    CELEBRATION = "\U0001f389"  # 🎉

    # Inquiries
    MENU_INQUIRY = "\U0001f4cb"  # 📋
    PRICE_INQUIRY = "\U0001f4b2"  # 💲
    HOURS_INQUIRY = "\u23f1\ufe0f"  # ⏱️
    DELIVERY_INQUIRY = "\U0001f697"  # 🚗
    PROMO_INQUIRY = "\U0001f381"  # 🎁
    GREETING = "\U0001f44b"  # 👋
    FAREWELL = "\U0001f91d"  # 🤝

    # User metrics
    FREQUENT_CLIENT = "\U0001f525"  # 🔥
    FIRST_ORDER = "\U0001f31f"  # 🌟
    LARGE_ORDER = "\U0001f3af"  # 🎯
    VIP_CLIENT = "\U0001f48e"  # 💎

    # Administration
    ADMIN_NOTIFICATION = "\U0001f514"  # 🔔
    SECURITY_ALERT = "\U0001f6a8"  # 🚨
    REPORT = "\U0001f4ca"  # 📊
    ADMIN_COMMAND = "\U0001f6e0\ufe0f"  # 🛠️

    # Validation
    BLOCKED = "\U0001f6ab"  # 🚫
    VERIFIED = "\U0001f510"  # 🔐

    # Other
    DOCUMENT = "\U0001f4c4"  # 📄
    SAVE = "\U0001f4dd"  # 📝
    REMINDER = "\u23f0"  # ⏰


# =============================================================================
# Trigger categories and keys
# =============================================================================


class TriggerCategory(str, Enum):
    """Semantic category of a reaction trigger."""

    ORDER_FLOW_STAGE = "order_flow_stage"
    CONVERSATION_STAGE = "conversation_stage"
    USER_INTENT = "user_intent"
    VALIDATION_RESULT = "validation_result"
    ADMIN_MESSAGE_KIND = "admin_message_kind"
    GENERAL_STATE = "general_state"
    USER_METRICS_PROFILE = "user_metrics_profile"


class OrderFlowStage(str, Enum):
    RECEIVED = "received"
    CONFIRMED = "confirmed"
    ADDRESS_SAVED = "address_saved"
    LOCATION_RECEIVED = "location_received"
    ACCESS_CODE_SAVED = "access_code_saved"
    PAYMENT_RECEIVED = "payment_received"
    PAYMENT_PROOF = "payment_proof"
    CASH_CONFIRMED = "cash_confirmed"
    VALIDATED = "validated"
    COMPLETED = "completed"
    ERROR = "error"
    CELEBRATION = "celebration"


class ConversationStage(str, Enum):
    """Conversation states the chatbot moves a user through."""

    AWAITING_ADDRESS = "awaiting_address"
    AWAITING_LOCATION_CONFIRMATION = "awaiting_location_confirmation"
    AWAITING_ACCESS_CODE_INFO = "awaiting_access_code_info"
    AWAITING_PAYMENT_METHOD = "awaiting_payment_method"
    AWAITING_CASH_DENOMINATION = "awaiting_cash_denomination"
    AWAITING_PAYMENT_PROOF = "awaiting_payment_proof"
    ORDER_COMPLETE = "order_complete"


class UserIntent(str, Enum):
    MENU = "menu"
    PRICE = "price"
    HOURS = "hours"
    DELIVERY = "delivery"
    PROMO = "promo"
    GREETING = "greeting"
    FAREWELL = "farewell"


class ValidationResult(str, Enum):
    VALID = "valid"
    SUSPICIOUS = "suspicious"
    BLOCKED = "blocked"
    VERIFIED = "verified"


class AdminMessageKind(str, Enum):
    NOTIFICATION = "notification"
    SECURITY = "security"
    REPORT = "report"
    COMMAND = "command"


class GeneralState(str, Enum):
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    CELEBRATION = "celebration"
    DOCUMENT = "document"
    SAVE = "save"
    REMINDER = "reminder"


class UserMetricsProfile(str, Enum):
    VIP = "vip"
    FREQUENT = "frequent"
    LARGE_ORDER = "large_order"
    FIRST_ORDER = "first_order"


# =============================================================================
# Triggers
# =============================================================================


class UserMetrics(BaseModel):
    """Snapshot of a user's value metrics supplied by upstream."""

    order_count: int = Field(0, ge=0, description="Completed orders so far")
    order_total: float = Field(0.0, ge=0, description="Total of the current order")
    total_spent: float = Field(0.0, ge=0, description="Lifetime spend")


class ReactionTrigger(BaseModel):
    """A pre-classified event describing why a reaction may be warranted."""

    recipient: str = Field(..., min_length=1, description="Platform user/phone ID")
    message_id: str = Field(..., min_length=1, description="Message to react to")
    category: TriggerCategory
    key: Optional[str] = Field(
        None, description="Category key (stage, intent, result, kind, state)"
    )
    metrics: Optional[UserMetrics] = Field(
        None, description="Metrics snapshot for user_metrics_profile triggers"
    )


# =============================================================================
# Guard decisions
# =============================================================================


class DecisionReason(str, Enum):
    OK = "ok"
    RATE_LIMIT_MINUTE = "rate_limit_minute"
    RATE_LIMIT_HOUR = "rate_limit_hour"
    COOLDOWN_MESSAGE = "cooldown_message"
    COOLDOWN_USER = "cooldown_user"


@dataclass(frozen=True)
class Decision:
    """Outcome of a rate-limit evaluation."""

    allowed: bool
    reason: DecisionReason
    at: Optional[float] = None  # guard clock reading, in ms

    def __bool__(self) -> bool:
        return self.allowed


# =============================================================================
# Dispatch events
# =============================================================================


class ReactionOutcome(str, Enum):
    SENT = "sent"
    REMOVED = "removed"
    RATE_LIMITED = "rate_limited"
    ERROR = "error"


class ReactionEvent(BaseModel):
    """Immutable record of one dispatch attempt."""

    model_config = ConfigDict(frozen=True)

    recipient: str
    message_id: str
    emoji: str = Field("", description="Empty string removes the reaction")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    outcome: ReactionOutcome
    reason: Optional[DecisionReason] = None

    @property
    def delivered(self) -> bool:
        return self.outcome in (ReactionOutcome.SENT, ReactionOutcome.REMOVED)


# =============================================================================
# Flows
# =============================================================================


class FlowStage(BaseModel):
    """One step of a flow: an emoji shown ``delay_ms`` after the previous step."""

    model_config = ConfigDict(frozen=True)

    emoji: str = Field(..., min_length=1)
    delay_ms: int = Field(0, ge=0)


class Flow(BaseModel):
    """Named, ordered sequence of reaction stages."""

    model_config = ConfigDict(frozen=True)

    flow_key: str = Field(..., min_length=1)
    stages: List[FlowStage] = Field(..., min_length=1)

    @field_validator("stages")
    @classmethod
    def first_stage_is_immediate(cls, v: List[FlowStage]) -> List[FlowStage]:
        if v and v[0].delay_ms != 0:
            raise ValueError("The first flow stage is dispatched immediately")
        return v

    def offsets_ms(self) -> List[int]:
        """Cumulative offset of every stage from the flow start."""
        offsets: List[int] = []
        total = 0
        for stage in self.stages:
            total += stage.delay_ms
            offsets.append(total)
        return offsets


@dataclass
class FlowInstance:
    """Runtime state of one running flow, owned by the scheduler."""

    message_id: str
    flow_key: str
    recipient: str
    generation_token: int
    started_at: float  # clock milliseconds
    current_stage_index: int = 0
    active: bool = True
