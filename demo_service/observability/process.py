"""Default process metrics, read from the OS each time the registry is scraped.

CPU time works everywhere; start time, resident memory and open fds come from
``/proc`` and are simply absent where it doesn't exist.
"""

from __future__ import annotations

import os
from pathlib import Path

from demo_service.observability.metrics import MetricRegistry


_PROC_SELF = Path("/proc/self")


def cpu_seconds() -> float:
    times = os.times()
    return times.user + times.system


def _boot_time(proc: Path) -> float | None:
    try:
        for line in (proc.parent / "stat").read_text().splitlines():
            if line.startswith("btime "):
                return float(line.split()[1])
    except OSError:
        return None
    return None


def start_time_seconds(proc: Path = _PROC_SELF) -> float | None:
    """Process start as seconds since the epoch."""

    try:
        stat = (proc / "stat").read_text()
    except OSError:
        return None
    btime = _boot_time(proc)
    if btime is None:
        return None
    # The command name (field 2) may contain spaces; fields resume after ')'.
    fields = stat.rpartition(")")[2].split()
    start_ticks = float(fields[19])
    return btime + start_ticks / os.sysconf("SC_CLK_TCK")


def resident_memory_bytes(proc: Path = _PROC_SELF) -> int | None:
    try:
        pages = int((proc / "statm").read_text().split()[1])
    except OSError:
        return None
    return pages * os.sysconf("SC_PAGE_SIZE")


def open_fds(proc: Path = _PROC_SELF) -> int | None:
    try:
        return len(os.listdir(proc / "fd"))
    except OSError:
        return None


def register_process_metrics(registry: MetricRegistry) -> None:
    """Register the ``process_*`` families. Already-registered names are left alone."""

    definitions = [
        ("process_cpu_seconds_total", "Total user and system CPU time spent in seconds.", cpu_seconds, "counter"),
        ("process_start_time_seconds", "Start time of the process since unix epoch in seconds.", start_time_seconds, "gauge"),
        ("process_resident_memory_bytes", "Resident memory size in bytes.", resident_memory_bytes, "gauge"),
        ("process_open_fds", "Number of open file descriptors.", open_fds, "gauge"),
    ]
    for name, help, callback, kind in definitions:
        if name not in registry:
            registry.register_callback(name, help, callback, kind)

