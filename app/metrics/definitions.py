"""Metric definitions used across the ticketing service."""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Tuple

if TYPE_CHECKING:
    from .registry import MetricsRegistry


@dataclass(frozen=True)
class MetricDefinition:
    """Describe a metric that should exist in the registry."""

    name: str
    metric_type: str
    description: str
    label_names: Tuple[str, ...] = ()

    def register(self, registry: MetricsRegistry) -> None:
        if self.metric_type == "counter":
            registry.counter(self.name, description=self.description, label_names=self.label_names)
        elif self.metric_type == "distribution":
            registry.distribution(self.name, description=self.description, label_names=self.label_names)
        else:
            raise ValueError(f"Unsupported metric type: {self.metric_type}")


DEFAULT_METRIC_DEFINITIONS: Tuple[MetricDefinition, ...] = (
    MetricDefinition(
        name="tickets_proposed_total",
        metric_type="counter",
        description="Total number of tickets proposed.",
    ),
    MetricDefinition(
        name="ticket_decisions_total",
        metric_type="counter",
        description="Number of approve or reject decisions applied.",
        label_names=("decision",),
    ),
    MetricDefinition(
        name="ticket_decision_failures_total",
        metric_type="counter",
        description="Number of decision attempts refused, by error code.",
        label_names=("reason",),
    ),
    MetricDefinition(
        name="ticket_decision_duration_seconds",
        metric_type="distribution",
        description="Duration of decision handling in seconds.",
    ),
    MetricDefinition(
        name="notifications_delivered_total",
        metric_type="counter",
        description="Notifications written to a recipient's inbox.",
        label_names=("type",),
    ),
    MetricDefinition(
        name="notification_delivery_failures_total",
        metric_type="counter",
        description="Notifications that could not be delivered.",
        label_names=("type",),
    ),
)
