"""In-process counters and timings for the raster buffers and transforms.

Counters:
    raster.allocated   every RasterImage created (results and intermediates)
    raster.recycled    every buffer released through RasterImage.recycle()

Timings:
    transforms.<name>  wall time of each public transform call, nested calls
                       (crop_center -> scale) recorded under their own names

Tests compare the counters before and after a transform to check that
intermediates were released.

Usage:
    from image_loader.metrics import metrics
    metrics.reset()
    transforms.crop_center(image, 100, 100)
    assert metrics.count("raster.recycled") == 1
"""

from __future__ import annotations

import time
from collections import defaultdict
from contextlib import contextmanager
from threading import RLock
from typing import Any


class _Metrics:
    def __init__(self) -> None:
        self._counters: dict[str, int] = defaultdict(int)
        self._timings: dict[str, list[float]] = defaultdict(list)
        self._lock = RLock()

    def inc(self, key: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[key] += int(amount)

    def count(self, key: str) -> int:
        with self._lock:
            return self._counters.get(key, 0)

    def timed(self, key: str):
        @contextmanager
        def _ctx():
            start = time.perf_counter()
            try:
                yield
            finally:
                elapsed = time.perf_counter() - start
                with self._lock:
                    self._timings[key].append(elapsed)

        return _ctx()

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "counters": dict(self._counters),
                "timings": {k: list(v) for k, v in self._timings.items()},
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._timings.clear()


metrics = _Metrics()
