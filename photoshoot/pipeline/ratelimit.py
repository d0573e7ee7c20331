import threading
import time
from typing import Callable, Tuple


class RateWindow:
    """Append-only rolling window of request timestamps."""

    def __init__(self, window_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.window_seconds = window_seconds
        self._clock = clock
        self._stamps: Tuple[float, ...] = ()
        self._lock = threading.Lock()

    def record(self) -> int:
        """Prunes entries older than the window, appends now, returns the count."""
        with self._lock:
            now = self._clock()
            cutoff = now - self.window_seconds
            self._stamps = tuple(t for t in self._stamps if t > cutoff) + (now,)
            return len(self._stamps)

    @property
    def timestamps(self) -> Tuple[float, ...]:
        with self._lock:
            return self._stamps

    def __len__(self) -> int:
        return len(self.timestamps)
