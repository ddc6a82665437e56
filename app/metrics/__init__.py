"""Process-local counters and timings for the ticketing workflow."""
from .definitions import DEFAULT_METRIC_DEFINITIONS, MetricDefinition
from .registry import MetricsRegistry

metrics_registry = MetricsRegistry()


def register_default_metrics(registry: MetricsRegistry | None = None) -> MetricsRegistry:
    target = registry or metrics_registry
    for definition in DEFAULT_METRIC_DEFINITIONS:
        definition.register(target)
    return target


register_default_metrics()

__all__ = [
    "DEFAULT_METRIC_DEFINITIONS",
    "MetricDefinition",
    "MetricsRegistry",
    "metrics_registry",
    "register_default_metrics",
]
