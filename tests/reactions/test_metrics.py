"""Tests for the Prometheus metrics sink."""

from chatreact.reactions.interfaces import MetricsSink
from chatreact.reactions.metrics import (
    REACTION_FLOW_EVENTS,
    REACTIONS_RATE_LIMITED,
    REACTIONS_TOTAL,
    PrometheusMetricsSink,
    record_flow_event,
)


def value(counter, **labels):
    return counter.labels(**labels)._value.get()


class TestPrometheusMetricsSink:
    def test_sent_increments_total(self):
        sink = PrometheusMetricsSink()
        before = value(REACTIONS_TOTAL, event_type="sent", emoji="✅")
        sink.increment("sent", emoji="✅")
        assert value(REACTIONS_TOTAL, event_type="sent", emoji="✅") == before + 1

    def test_removed_uses_none_label(self):
        sink = PrometheusMetricsSink()
        before = value(REACTIONS_TOTAL, event_type="removed", emoji="none")
        sink.increment("removed")
        assert value(REACTIONS_TOTAL, event_type="removed", emoji="none") == before + 1

    def test_rate_limited_tagged_with_reason(self):
        sink = PrometheusMetricsSink()
        before = value(REACTIONS_RATE_LIMITED, reason="cooldown_user")
        sink.increment("rate_limited", emoji="✅", reason="cooldown_user")
        assert value(REACTIONS_RATE_LIMITED, reason="cooldown_user") == before + 1

    def test_unknown_event_type_ignored(self):
        sink = PrometheusMetricsSink()
        sink.increment("exploded")
        samples = [
            s.labels.get("event_type")
            for metric in REACTIONS_TOTAL.collect()
            for s in metric.samples
        ]
        assert "exploded" not in samples

    def test_implements_protocol(self):
        assert isinstance(PrometheusMetricsSink(), MetricsSink)


def test_record_flow_event():
    before = value(REACTION_FLOW_EVENTS, flow_key="order_flow", event="cancelled")
    record_flow_event("order_flow", "cancelled")
    assert (
        value(REACTION_FLOW_EVENTS, flow_key="order_flow", event="cancelled")
        == before + 1
    )
