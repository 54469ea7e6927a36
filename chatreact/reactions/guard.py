"""Sliding-window rate limiting and cooldowns for outgoing reactions.

The messaging platform penalizes bots that react too often, so every
reaction passes through ``RateLimitGuard.evaluate`` before it is sent and is
recorded with ``RateLimitGuard.record`` once the platform accepted it.
"""

import logging
import time
from bisect import insort
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Optional

from chatreact.reactions.models import Decision, DecisionReason

logger = logging.getLogger(__name__)

MINUTE_MS = 60_000
HOUR_MS = 3_600_000

Clock = Callable[[], float]


def monotonic_ms() -> float:
    """Default guard clock in milliseconds."""
    return time.monotonic() * 1000.0


@dataclass
class RateWindow:
    """In-memory send history used by the guard."""

    per_minute: Deque[float] = field(default_factory=deque)
    per_hour: Deque[float] = field(default_factory=deque)
    last_by_message: Dict[str, float] = field(default_factory=dict)
    last_by_user: Dict[str, float] = field(default_factory=dict)


class RateLimitGuard:
    """Decides whether a reaction may be sent right now.

    Checks, in order: per-minute window, per-hour window, per-message
    cooldown, per-recipient cooldown. Never raises; a recipient or message
    without history counts as never sent.

    Args:
        max_per_minute: Reactions allowed in any trailing 60 s.
        max_per_hour: Reactions allowed in any trailing hour.
        message_cooldown_ms: Minimum gap between reactions on one message.
        user_cooldown_ms: Minimum gap between reactions to one recipient.
        clock: Millisecond clock, injectable for tests.
    """

    def __init__(
        self,
        max_per_minute: int = 10,
        max_per_hour: int = 200,
        message_cooldown_ms: int = 5000,
        user_cooldown_ms: int = 1000,
        clock: Optional[Clock] = None,
    ):
        self.max_per_minute = max_per_minute
        self.max_per_hour = max_per_hour
        self.message_cooldown_ms = message_cooldown_ms
        self.user_cooldown_ms = user_cooldown_ms
        self._clock = clock or monotonic_ms
        self._window = RateWindow()
        self._record_count: int = 0
        self._prune_interval: int = 100

    def _purge(self, now: float) -> None:
        minute = self._window.per_minute
        while minute and now - minute[0] >= MINUTE_MS:
            minute.popleft()
        hour = self._window.per_hour
        while hour and now - hour[0] >= HOUR_MS:
            hour.popleft()

    def _prune_cooldowns(self, now: float) -> None:
        """Drop cooldown entries that can no longer deny anything."""
        self._window.last_by_message = {
            k: ts
            for k, ts in self._window.last_by_message.items()
            if now - ts < self.message_cooldown_ms
        }
        self._window.last_by_user = {
            k: ts
            for k, ts in self._window.last_by_user.items()
            if now - ts < self.user_cooldown_ms
        }

    def evaluate(
        self,
        recipient: str,
        message_id: str,
        *,
        skip_message_cooldown: bool = False,
    ) -> Decision:
        """Return whether a reaction to ``message_id`` may be sent now."""
        now = self._clock()
        self._purge(now)

        if len(self._window.per_minute) >= self.max_per_minute:
            return Decision(False, DecisionReason.RATE_LIMIT_MINUTE, now)
        if len(self._window.per_hour) >= self.max_per_hour:
            return Decision(False, DecisionReason.RATE_LIMIT_HOUR, now)

        if not skip_message_cooldown:
            last_message = self._window.last_by_message.get(message_id)
            if (
                last_message is not None
                and now - last_message < self.message_cooldown_ms
            ):
                return Decision(False, DecisionReason.COOLDOWN_MESSAGE, now)

        last_user = self._window.last_by_user.get(recipient)
        if last_user is not None and now - last_user < self.user_cooldown_ms:
            return Decision(False, DecisionReason.COOLDOWN_USER, now)

        return Decision(True, DecisionReason.OK, now)

    def record(
        self, recipient: str, message_id: str, at: Optional[float] = None
    ) -> None:
        """Register a reaction the platform accepted.

        ``at`` is the time the send was allowed (``Decision.at``) and
        defaults to now.
        """
        now = self._clock() if at is None else at
        for window in (self._window.per_minute, self._window.per_hour):
            if window and now < window[-1]:
                insort(window, now)
            else:
                window.append(now)
        last_message = self._window.last_by_message.get(message_id, now)
        self._window.last_by_message[message_id] = max(last_message, now)
        last_user = self._window.last_by_user.get(recipient, now)
        self._window.last_by_user[recipient] = max(last_user, now)

        self._record_count += 1
        if self._record_count % self._prune_interval == 0:
            self._prune_cooldowns(now)

    def snapshot(self) -> Dict[str, int]:
        """Current window sizes, for stats."""
        self._purge(self._clock())
        return {
            "sent_last_minute": len(self._window.per_minute),
            "sent_last_hour": len(self._window.per_hour),
            "max_per_minute": self.max_per_minute,
            "max_per_hour": self.max_per_hour,
            "tracked_messages": len(self._window.last_by_message),
            "tracked_recipients": len(self._window.last_by_user),
        }
