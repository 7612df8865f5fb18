"""Size the crawl worker pool from available system resources."""

import os
from typing import Optional

import psutil
from pydantic import BaseModel

MB = 1024 * 1024


class ResourceSnapshot(BaseModel):
    cpu_count: int
    cpu_percent: float
    memory_percent: float
    memory_available_mb: int
    optimal_workers: int


class ResourceMonitor:
    """Pick a safe number of concurrent fetch workers for this machine."""

    def __init__(
        self,
        max_memory_percent: float = 75.0,
        min_free_memory_mb: int = 512,
        memory_per_worker_mb: int = 200,
        max_workers: int = 10,
        min_workers: int = 1,
    ) -> None:
        self.max_memory_percent = max_memory_percent
        self.min_free_memory_mb = min_free_memory_mb
        self.memory_per_worker_mb = memory_per_worker_mb
        self.max_workers = max_workers
        self.min_workers = min_workers

    def calculate_optimal_workers(self, pending: Optional[int] = None) -> int:
        """Estimate how many browser tabs can run side by side.

        Memory above ``min_free_memory_mb`` is split into
        ``memory_per_worker_mb`` slices; the result is capped at twice the
        CPU count (fetching is I/O bound), at ``max_workers`` and at
        ``pending`` when given. Under memory pressure the minimum is used.
        """
        mem = psutil.virtual_memory()
        if mem.percent >= self.max_memory_percent:
            return self.min_workers

        spare_mb = mem.available / MB - self.min_free_memory_mb
        if spare_mb < 0:
            return self.min_workers

        caps = [
            int(spare_mb // self.memory_per_worker_mb),
            (os.cpu_count() or 2) * 2,
            self.max_workers,
        ]
        if pending is not None:
            caps.append(pending)
        return max(min(caps), self.min_workers)

    def get_snapshot(self) -> ResourceSnapshot:
        mem = psutil.virtual_memory()
        return ResourceSnapshot(
            cpu_count=os.cpu_count() or 0,
            cpu_percent=psutil.cpu_percent(interval=0.1),
            memory_percent=mem.percent,
            memory_available_mb=round(mem.available / MB),
            optimal_workers=self.calculate_optimal_workers(),
        )
