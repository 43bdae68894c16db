"""
Per-run operation tracking.

A RunContext is created at the start of each trigger or scheduled run and
passed down to every component that performs I/O. It counts reads, writes and
deletes per collection so a run can log what it cost. Counters are guarded by a
lock since sweeps fan out across worker threads.
"""

from collections import defaultdict
from dataclasses import dataclass, field
import logging
import threading
import time
from typing import Any, Dict, Optional

import ulid

READ = "reads"
WRITE = "writes"
DELETE = "deletes"


@dataclass
class RunContext:
    name: str
    run_id: str = field(default_factory=lambda: str(ulid.ULID()))
    started_at: float = field(default_factory=time.monotonic)
    _counts: Dict[str, Dict[str, int]] = field(
        default_factory=lambda: defaultdict(lambda: {READ: 0, WRITE: 0, DELETE: 0})
    )
    _timings: Dict[str, Dict[str, float]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def _track(self, kind: str, collection: str, count: int) -> None:
        if count <= 0:
            return
        with self._lock:
            self._counts[collection][kind] += count

    def track_read(self, collection: str, count: int = 1) -> None:
        self._track(READ, collection, count)

    def track_write(self, collection: str, count: int = 1) -> None:
        self._track(WRITE, collection, count)

    def track_delete(self, collection: str, count: int = 1) -> None:
        self._track(DELETE, collection, count)

    def record_timing(self, operation: str, elapsed: float, success: bool) -> None:
        with self._lock:
            timing = self._timings.setdefault(
                operation, {"count": 0, "failures": 0, "total_ms": 0.0, "max_ms": 0.0}
            )
            elapsed_ms = elapsed * 1000
            timing["count"] += 1
            timing["total_ms"] += elapsed_ms
            timing["max_ms"] = max(timing["max_ms"], elapsed_ms)
            if not success:
                timing["failures"] += 1

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)

    def summary(self) -> Dict[str, Any]:
        with self._lock:
            by_collection = {name: dict(counts) for name, counts in self._counts.items()}
            timings = {name: dict(timing) for name, timing in self._timings.items()}
        totals = {READ: 0, WRITE: 0, DELETE: 0}
        for counts in by_collection.values():
            for kind, value in counts.items():
                totals[kind] += value
        return {
            "run": self.name,
            "run_id": self.run_id,
            "duration_ms": self.elapsed_ms,
            "totals": totals,
            "collections": by_collection,
            "timings": timings,
        }

    def log_summary(self, logger: Optional[logging.Logger] = None) -> Dict[str, Any]:
        data = self.summary()
        totals = data["totals"]
        (logger or logging.getLogger(__name__)).info(
            f"[{self.name}] operations: {totals[READ]} reads, {totals[WRITE]} writes, "
            f"{totals[DELETE]} deletes in {data['duration_ms']}ms",
            extra={"run_id": self.run_id, "collections": data["collections"]},
        )
        return data
