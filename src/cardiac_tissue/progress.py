from __future__ import annotations
import threading
from collections import deque
from typing import Callable, List, Optional

from .constants import PROGRESS_BUFFER

ProgressSink = Callable[[float], None]


class ProgressChannel:
    """Thread-safe, bounded buffer of progress percentages.

    The simulation publishes into it synchronously; another thread can poll
    :attr:`latest` or :meth:`drain` the buffered updates. When the buffer is
    full the oldest updates are dropped, :attr:`latest` is always current.
    """

    def __init__(self, maxlen: int = PROGRESS_BUFFER) -> None:
        self._updates: deque = deque(maxlen=maxlen)
        self._latest: Optional[float] = None
        self._lock = threading.Lock()

    def publish(self, percent: float) -> None:
        with self._lock:
            self._updates.append(percent)
            self._latest = percent

    __call__ = publish

    @property
    def latest(self) -> Optional[float]:
        with self._lock:
            return self._latest

    @property
    def finished(self) -> bool:
        return self.latest == 100

    def drain(self) -> List[float]:
        with self._lock:
            updates = list(self._updates)
            self._updates.clear()
        return updates


class ProgressReporter:
    """Turns step indices into at most ~100 increasing integer percentages.

    Updates are checked every ``total_steps // 100`` steps, only strictly
    larger values are emitted, and 100 is reserved for :meth:`finish`.
    """

    def __init__(self, total_steps: int, sink: Optional[ProgressSink] = None) -> None:
        self.total_steps = max(1, int(total_steps))
        self.sink = sink
        self.every = max(1, self.total_steps // 100)
        self.last = -1

    def _emit(self, percent: int) -> None:
        self.last = percent
        if self.sink is not None:
            self.sink(percent)

    def update(self, step: int) -> None:
        """Report progress for the 0-based ``step`` just started."""
        if step % self.every:
            return
        percent = min(99, step * 100 // self.total_steps)
        if percent > self.last:
            self._emit(percent)

    def finish(self) -> None:
        if self.last < 100:
            self._emit(100)
