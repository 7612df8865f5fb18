from types import SimpleNamespace

import pytest

from sitegraph import resources
from sitegraph.resources import ResourceMonitor

MB = 1024 * 1024


@pytest.fixture
def machine(monkeypatch):
    state = {"percent": 40.0, "available": 4096 * MB, "cpus": 4}
    monkeypatch.setattr(
        resources.psutil,
        "virtual_memory",
        lambda: SimpleNamespace(percent=state["percent"], available=state["available"]),
    )
    monkeypatch.setattr(resources.psutil, "cpu_percent", lambda interval=None: 12.5)
    monkeypatch.setattr(resources.os, "cpu_count", lambda: state["cpus"])
    return state


def test_workers_capped_by_cpu(machine) -> None:
    # 3584 MB usable / 200 MB per worker = 17, capped at 2 * 4 CPUs
    assert ResourceMonitor().calculate_optimal_workers() == 8


def test_workers_capped_by_memory(machine) -> None:
    machine["available"] = 1024 * MB
    machine["cpus"] = 16

    assert ResourceMonitor().calculate_optimal_workers() == 2


def test_workers_capped_by_maximum(machine) -> None:
    machine["available"] = 64 * 1024 * MB
    machine["cpus"] = 64

    assert ResourceMonitor(max_workers=6).calculate_optimal_workers() == 6


def test_memory_pressure_falls_back_to_minimum(machine) -> None:
    machine["percent"] = 90.0
    assert ResourceMonitor(min_workers=2).calculate_optimal_workers() == 2

    machine["percent"] = 40.0
    machine["available"] = 256 * MB
    assert ResourceMonitor().calculate_optimal_workers() == 1


def test_pending_work_caps_workers(machine) -> None:
    assert ResourceMonitor().calculate_optimal_workers(pending=3) == 3
    assert ResourceMonitor().calculate_optimal_workers(pending=0) == 1


def test_snapshot(machine) -> None:
    snapshot = ResourceMonitor().get_snapshot()

    assert snapshot.model_dump() == {
        "cpu_count": 4,
        "cpu_percent": 12.5,
        "memory_percent": 40.0,
        "memory_available_mb": 4096,
        "optimal_workers": 8,
    }
