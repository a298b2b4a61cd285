"""Metrics the workflow engine records."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

TRANSITIONS_TOTAL = "ticket_transitions_total"
TRANSITION_REJECTIONS_TOTAL = "ticket_transition_rejections_total"
REVERTS_TOTAL = "ticket_reverts_total"
TICKETS_CREATED_TOTAL = "tickets_created_total"
VERSION_CONFLICTS_TOTAL = "ticket_version_conflicts_total"
QUERY_DURATION_SECONDS = "ticket_query_duration_seconds"


@dataclass(frozen=True)
class MetricDefinition:
    name: str
    metric_type: str
    description: str
    label_names: Tuple[str, ...] = ()


DEFAULT_METRIC_DEFINITIONS: Tuple[MetricDefinition, ...] = (
    MetricDefinition(
        name=TICKETS_CREATED_TOTAL,
        metric_type="counter",
        description="Tickets opened at intake.",
    ),
    MetricDefinition(
        name=TRANSITIONS_TOTAL,
        metric_type="counter",
        description="Successful forward status transitions.",
        label_names=("from_status", "to_status"),
    ),
    MetricDefinition(
        name=TRANSITION_REJECTIONS_TOTAL,
        metric_type="counter",
        description="Advance attempts rejected by the transition validator.",
        label_names=("status", "kind"),
    ),
    MetricDefinition(
        name=REVERTS_TOTAL,
        metric_type="counter",
        description="Administrative reverts to an earlier status.",
        label_names=("to_status",),
    ),
    MetricDefinition(
        name=VERSION_CONFLICTS_TOTAL,
        metric_type="counter",
        description="Writes discarded because another writer updated the ticket first.",
    ),
    MetricDefinition(
        name=QUERY_DURATION_SECONDS,
        metric_type="distribution",
        description="Latency of ticket list queries in seconds.",
        label_names=("strategy",),
    ),
)
