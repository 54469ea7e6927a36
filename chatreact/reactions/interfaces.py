"""Protocols for the engine's external collaborators."""

from typing import Any, Dict, Optional, Protocol, runtime_checkable


@runtime_checkable
class ReactionTransport(Protocol):
    """Sends (or, with an empty emoji, removes) a reaction on the platform.

    Implementations report timeouts, transport errors and non-2xx responses
    uniformly as ``False``.
    """

    async def send(self, recipient: str, message_id: str, emoji: str) -> bool: ...


@runtime_checkable
class ReactionStore(Protocol):
    """TTL-capable persistence for reaction history and analytics counters."""

    async def record_reaction(
        self, message_id: str, entry: Dict[str, Any], ttl_seconds: int
    ) -> None: ...

    async def increment_counter(self, key: str, ttl_seconds: int) -> int: ...


@runtime_checkable
class MetricsSink(Protocol):
    """Counter increments for observability."""

    def increment(
        self,
        event_type: str,
        emoji: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None: ...
