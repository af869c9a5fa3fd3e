"""Prometheus text exposition (format 0.0.4) for a :class:`MetricRegistry`.

Example output::

    # HELP http_requests_total Total number of HTTP requests
    # TYPE http_requests_total counter
    http_requests_total{method="GET",path="/health",status="200"} 3
"""

from __future__ import annotations

from typing import Any

from starlette.responses import Response

from demo_service.observability.metrics import LabelSet, MetricRegistry


CONTENT_TYPE = "text/plain; version=0.0.4"


def _escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")


def _escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def format_labels(labels: LabelSet) -> str:
    if not labels.pairs:
        return ""
    inner = ",".join(f'{name}="{_escape_label_value(value)}"' for name, value in labels.pairs)
    return "{" + inner + "}"


def format_value(value: int | float) -> str:
    if isinstance(value, float):
        return repr(value)
    return str(int(value))


def render(registry: MetricRegistry) -> str:
    families = registry.families()
    series: dict[str, list[str]] = {}
    for sample in registry.collect():
        series.setdefault(sample.family, []).append(
            f"{sample.family}{format_labels(sample.labels)} {format_value(sample.value)}"
        )

    lines: list[str] = []
    for family in families:
        lines.append(f"# HELP {family.name} {_escape_help(family.help)}")
        lines.append(f"# TYPE {family.name} {family.type}")
        lines.extend(series.get(family.name, ()))
    if not lines:
        return ""
    return "\n".join(lines) + "\n"


class ExpositionEndpoint:
    """Serves the registry to pull-based scrapers. Never mutates the registry."""

    def __init__(self, registry: MetricRegistry) -> None:
        self.registry = registry

    def handle(self, request: Any = None) -> Response:
        _ = request
        return Response(content=render(self.registry), status_code=200, media_type=CONTENT_TYPE)
