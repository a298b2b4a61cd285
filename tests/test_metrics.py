from __future__ import annotations

import pytest

from warranty_desk.metrics import MetricsRegistry, PrometheusExporter, register_default_metrics
from warranty_desk.metrics.base import track_duration
from warranty_desk.metrics.definitions import (
    DEFAULT_METRIC_DEFINITIONS,
    QUERY_DURATION_SECONDS,
    TRANSITIONS_TOTAL,
)


def test_default_metrics_are_registered_up_front():
    registry = register_default_metrics(MetricsRegistry())

    assert {metric.name for metric in registry.metrics()} == {item.name for item in DEFAULT_METRIC_DEFINITIONS}


def test_counter_requires_declared_labels():
    registry = register_default_metrics(MetricsRegistry())
    counter = registry.counter(TRANSITIONS_TOTAL)

    counter.inc(labels={"from_status": "INTERNO", "to_status": "ENTREGA_LOGISTICA"})
    counter.inc(labels={"from_status": "INTERNO", "to_status": "ENTREGA_LOGISTICA"})

    assert counter.value(labels={"from_status": "INTERNO", "to_status": "ENTREGA_LOGISTICA"}) == 2.0
    with pytest.raises(ValueError):
        counter.inc(labels={"from_status": "INTERNO"})
    with pytest.raises(ValueError):
        counter.inc(-1, labels={"from_status": "INTERNO", "to_status": "ENTREGA_LOGISTICA"})


def test_registry_refuses_kind_mismatch():
    registry = register_default_metrics(MetricsRegistry())

    with pytest.raises(TypeError):
        registry.counter(QUERY_DURATION_SECONDS)


def test_track_duration_observes_even_on_error():
    registry = register_default_metrics(MetricsRegistry())
    metric = registry.distribution(QUERY_DURATION_SECONDS)

    with pytest.raises(RuntimeError):
        with track_duration(metric, labels={"strategy": "scan"}):
            raise RuntimeError("boom")

    stats = metric.snapshot()[("scan",)]
    assert stats["count"] == 1.0
    assert stats["sum"] >= 0.0


def test_prometheus_payload_format():
    registry = MetricsRegistry()
    registry.counter("tickets_created_total", description="Tickets opened at intake.").inc()
    registry.distribution("ticket_query_duration_seconds", label_names=("strategy",)).observe(
        0.5, labels={"strategy": "indexed"}
    )

    payload = PrometheusExporter(registry).build_payload()

    assert payload.endswith("\n")
    lines = payload.splitlines()
    assert "# HELP tickets_created_total Tickets opened at intake." in lines
    assert "# TYPE tickets_created_total counter" in lines
    assert "tickets_created_total 1.0" in lines
    assert "# TYPE ticket_query_duration_seconds summary" in lines
    assert 'ticket_query_duration_seconds_count{strategy="indexed"} 1.0' in lines
    assert 'ticket_query_duration_seconds_sum{strategy="indexed"} 0.5' in lines


def test_empty_registry_renders_empty_payload():
    assert PrometheusExporter(MetricsRegistry()).build_payload() == ""
