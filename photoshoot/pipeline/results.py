import logging
import threading
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger("PhotoshootEngine")


class ResultBuffer:
    """
    Fixed-length slot array for one generation pass.

    Backend callbacks may arrive out of order and from worker threads, so
    every write goes through one lock. A slot is written at most once; later
    writes to a filled slot, or to an index outside the array, are ignored.
    """

    def __init__(self, size: int, on_change: Optional[Callable[[Tuple[Optional[str], ...]], None]] = None):
        if size < 0:
            raise ValueError("Result buffer size must be non-negative")
        self._slots: List[Optional[str]] = [None] * size
        self._lock = threading.Lock()
        self._on_change = on_change

    def __len__(self) -> int:
        return len(self._slots)

    def write(self, index: int, image: str) -> bool:
        with self._lock:
            if not 0 <= index < len(self._slots):
                logger.warning(f"⚠️ Ignoring image for out-of-range slot {index} (size {len(self._slots)})")
                return False
            if self._slots[index] is not None:
                logger.warning(f"⚠️ Ignoring duplicate image for slot {index}")
                return False
            self._slots[index] = image
            snapshot = tuple(self._slots)
            # Publish inside the lock so listeners see writes in order.
            if self._on_change is not None:
                self._on_change(snapshot)
        return True

    def snapshot(self) -> Tuple[Optional[str], ...]:
        with self._lock:
            return tuple(self._slots)

    @property
    def filled(self) -> int:
        with self._lock:
            return sum(1 for slot in self._slots if slot is not None)

    @property
    def complete(self) -> bool:
        return self.filled == len(self)
