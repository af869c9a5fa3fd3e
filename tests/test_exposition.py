from __future__ import annotations

from demo_service.observability.exposition import CONTENT_TYPE, ExpositionEndpoint, render
from demo_service.observability.metrics import MetricRegistry


def test_empty_registry_renders_empty_body(registry: MetricRegistry) -> None:
    response = ExpositionEndpoint(registry).handle()

    assert response.status_code == 200
    assert response.body == b""
    assert response.headers["content-type"].startswith(CONTENT_TYPE)


def test_render_scenario(registry: MetricRegistry) -> None:
    registry.register_family("http_requests_total", "Total number of HTTP requests", ("method", "path", "status"))
    for _ in range(3):
        registry.increment("http_requests_total", ("GET", "/health", "200"))
    registry.increment("http_requests_total", ("GET", "/metrics", "200"))

    assert render(registry) == (
        "# HELP http_requests_total Total number of HTTP requests\n"
        "# TYPE http_requests_total counter\n"
        'http_requests_total{method="GET",path="/health",status="200"} 3\n'
        'http_requests_total{method="GET",path="/metrics",status="200"} 1\n'
    )


def test_family_without_series_emits_only_headers(registry: MetricRegistry) -> None:
    registry.register_family("idle_total", "Idle", ("kind",))
    assert render(registry) == "# HELP idle_total Idle\n# TYPE idle_total counter\n"


def test_unlabelled_family(registry: MetricRegistry) -> None:
    registry.register_family("boots_total", "Boots").inc()
    assert render(registry).splitlines()[-1] == "boots_total 1"


def test_escaping(registry: MetricRegistry) -> None:
    family = registry.register_family("odd_total", "Line one\nback\\slash", ("value",))
    family.inc(('say "hi"\\\n',))

    lines = render(registry).splitlines()
    assert lines[0] == "# HELP odd_total Line one\\nback\\\\slash"
    assert lines[2] == 'odd_total{value="say \\"hi\\"\\\\\\n"} 1'


def test_scrape_does_not_mutate_registry(registry: MetricRegistry) -> None:
    registry.register_family("jobs_total", "Jobs", ("kind",)).inc(("a",))
    endpoint = ExpositionEndpoint(registry)

    first = endpoint.handle().body
    second = endpoint.handle().body

    assert first == second
    assert [(s.labels.values, s.value) for s in registry.collect()] == [(("a",), 1)]


def test_collect_time_families_render_with_their_type(registry: MetricRegistry) -> None:
    registry.register_family("jobs_total", "Jobs", ("kind",)).inc(("a",))
    registry.register_callback("queue_depth", "Items waiting", lambda: 2.5)
    registry.register_callback("disk_bytes", "Unavailable here", lambda: None)

    assert render(registry) == (
        "# HELP jobs_total Jobs\n"
        "# TYPE jobs_total counter\n"
        'jobs_total{kind="a"} 1\n'
        "# HELP queue_depth Items waiting\n"
        "# TYPE queue_depth gauge\n"
        "queue_depth 2.5\n"
        "# HELP disk_bytes Unavailable here\n"
        "# TYPE disk_bytes gauge\n"
    )
