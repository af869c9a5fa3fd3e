from __future__ import annotations

import os
import time
from pathlib import Path

import pytest

from demo_service.observability.exposition import render
from demo_service.observability.metrics import MetricRegistry
from demo_service.observability.process import (
    cpu_seconds,
    open_fds,
    register_process_metrics,
    resident_memory_bytes,
    start_time_seconds,
)


HAS_PROC = Path("/proc/self/stat").exists()


def _fake_proc(tmp_path: Path, stat: str, statm: str = "1000 250 0 0 0 0 0") -> Path:
    (tmp_path / "stat").write_text("cpu  1 2 3\nbtime 1700000000\nprocesses 42\n")
    proc = tmp_path / "self"
    (proc / "fd").mkdir(parents=True)
    for n in range(3):
        (proc / "fd" / str(n)).write_text("")
    (proc / "stat").write_text(stat)
    (proc / "statm").write_text(statm)
    return proc


def test_readings_from_proc_files(tmp_path: Path) -> None:
    # Command name with spaces and a ')' must not shift the fields.
    fields_after_comm = ["S"] + ["0"] * 18 + ["500"] + ["0"] * 10
    proc = _fake_proc(tmp_path, "123 (my (odd) app) " + " ".join(fields_after_comm) + "\n")

    assert start_time_seconds(proc) == pytest.approx(1700000000 + 500 / os.sysconf("SC_CLK_TCK"))
    assert resident_memory_bytes(proc) == 250 * os.sysconf("SC_PAGE_SIZE")
    assert open_fds(proc) == 3


def test_missing_proc_yields_no_reading(tmp_path: Path) -> None:
    missing = tmp_path / "nope" / "self"
    assert start_time_seconds(missing) is None
    assert resident_memory_bytes(missing) is None
    assert open_fds(missing) is None


def test_cpu_seconds_is_non_negative() -> None:
    assert cpu_seconds() >= 0


def test_process_families_are_exposed(registry: MetricRegistry) -> None:
    register_process_metrics(registry)
    text = render(registry)

    assert "# TYPE process_cpu_seconds_total counter" in text
    assert "# TYPE process_start_time_seconds gauge" in text
    assert "# TYPE process_resident_memory_bytes gauge" in text
    cpu_line = next(line for line in text.splitlines() if line.startswith("process_cpu_seconds_total "))
    assert float(cpu_line.split()[1]) >= 0


@pytest.mark.skipif(not HAS_PROC, reason="needs /proc")
def test_live_process_readings(registry: MetricRegistry) -> None:
    register_process_metrics(registry)
    values = {s.family: s.value for s in registry.collect()}

    assert values["process_start_time_seconds"] <= time.time()
    assert values["process_resident_memory_bytes"] > 0
    assert values["process_open_fds"] > 0


def test_registering_twice_keeps_existing_families(registry: MetricRegistry) -> None:
    register_process_metrics(registry)
    before = registry.families()
    register_process_metrics(registry)
    assert registry.families() == before
