import asyncio
import logging
import threading
from typing import Optional

from photoshoot.core.errors import GenerationCancelled

logger = logging.getLogger("PhotoshootEngine")


class CancellationToken:
    """
    Per-call cancellation signal checked at every suspension point of a
    workflow (backend call, retry backoff, poll wait).

    `cancel()` may be called from any thread; a pending `sleep()` wakes
    immediately. Cancelling only stops the client from continuing: work
    already submitted to the backend is not aborted.
    """

    def __init__(self):
        self._cancelled = threading.Event()
        self._wakeup: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        logger.info("🛑 Cancellation requested")
        if self._wakeup is None or self._loop is None or self._loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._wakeup.set()
        else:
            self._loop.call_soon_threadsafe(self._wakeup.set)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise GenerationCancelled("Operation cancelled")

    async def sleep(self, seconds: float) -> None:
        """Waits `seconds`, returning early (and raising) if cancelled."""
        self.raise_if_cancelled()
        loop = asyncio.get_running_loop()
        if self._wakeup is None or self._loop is not loop:
            self._loop = loop
            self._wakeup = asyncio.Event()
            if self.cancelled:
                self._wakeup.set()
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
        self.raise_if_cancelled()
