import time
from collections import OrderedDict, deque
from typing import Deque, Dict, List, Optional

MAX_SERIES = 256
MAX_SAMPLES = 100


class LatencyRecorder:
    """
    Start marks and named duration measurements for outgoing requests.

    Marks are keyed by request path only. Two in-flight requests to the
    same path share a mark, so the second one overwrites the first.

    Only the most recent `max_samples` durations are kept per name, and
    only the `max_series` most recently used names.
    """

    def __init__(self, clock=time.monotonic, max_series: int = MAX_SERIES,
                 max_samples: int = MAX_SAMPLES):
        self._clock = clock
        self._max_series = max_series
        self._max_samples = max_samples
        self._marks: Dict[str, float] = {}
        self._measures: 'OrderedDict[str, Deque[float]]' = OrderedDict()

    def mark(self, path: str) -> None:
        self._marks[f"req-{path}"] = self._clock()

    def has_mark(self, path: str) -> bool:
        return f"req-{path}" in self._marks

    def discard(self, path: str) -> None:
        self._marks.pop(f"req-{path}", None)

    def measure(self, path: str) -> Optional[float]:
        """Record the time since the mark for path as `api-{path}` and clear the mark."""
        started = self._marks.pop(f"req-{path}", None)
        if started is None:
            return None
        elapsed = self._clock() - started
        self._series(f"api-{path}").append(elapsed)
        return elapsed

    def measurements(self, name: str) -> List[float]:
        return list(self._measures.get(name, []))

    def series_names(self) -> List[str]:
        return list(self._measures)

    def _series(self, name: str) -> Deque[float]:
        series = self._measures.get(name)
        if series is not None:
            self._measures.move_to_end(name)
            return series
        series = self._measures[name] = deque(maxlen=self._max_samples)
        while len(self._measures) > self._max_series:
            self._measures.popitem(last=False)
        return series
