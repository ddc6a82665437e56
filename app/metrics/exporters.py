"""Render the metrics registry for scraping."""
from __future__ import annotations

import logging
from typing import Mapping, Sequence

from .base import Metric
from .registry import MetricsRegistry

logger = logging.getLogger(__name__)

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


def _format_labels(label_names: Sequence[str], label_values: Sequence[str]) -> str:
    if not label_values:
        return ""
    pairs = [f'{name}="{value}"' for name, value in zip(label_names, label_values)]
    return "{" + ",".join(pairs) + "}"


class PrometheusExporter:
    """Produce Prometheus text exposition output from a registry."""

    def __init__(self, registry: MetricsRegistry) -> None:
        self.registry = registry

    def _metric_lines(self, metric: Metric) -> list[str]:
        lines = [
            f"# HELP {metric.name} {metric.description}",
            f"# TYPE {metric.name} {metric.kind}",
        ]
        snapshot: Mapping = metric.snapshot()
        for label_values, values in snapshot.items():
            labels = _format_labels(metric.label_names, label_values)
            if "value" in values:
                lines.append(f"{metric.name}{labels} {values['value']}")
            else:
                lines.append(f"{metric.name}_count{labels} {values['count']}")
                lines.append(f"{metric.name}_sum{labels} {values['sum']}")
        return lines

    def build_payload(self) -> str:
        lines: list[str] = []
        for metric in self.registry.metrics():
            lines.extend(self._metric_lines(metric))
        return "\n".join(lines) + "\n"

    def export(self) -> str:
        payload = self.build_payload()
        logger.debug("Generated metrics payload with %d bytes", len(payload))
        return payload
