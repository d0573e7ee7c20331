"""
Video job lifecycle.

    SUBMITTED -> POLLING -> FETCHING -> DONE
        any non-terminal state -> CANCELLED | FAILED

POLLING exits when the handle reports `done` (to FETCHING), when the token
is cancelled (to CANCELLED, checked before and after every wait), or when
the backend reports an error (to FAILED). The interval between polls is
fixed.
"""
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from photoshoot.core.errors import BackendError, GenerationCancelled
from photoshoot.core.models import OperationHandle
from photoshoot.generators.base import BackendGateway
from photoshoot.pipeline.cancellation import CancellationToken

logger = logging.getLogger("PhotoshootEngine")

NO_VIDEO_URL_MESSAGE = "Video generation completed but no video URL was returned."


class JobState(Enum):
    SUBMITTED = "submitted"
    POLLING = "polling"
    FETCHING = "fetching"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATES = (JobState.DONE, JobState.CANCELLED, JobState.FAILED)


class VideoJob:
    def __init__(
        self,
        gateway: BackendGateway,
        handle: OperationHandle,
        token: CancellationToken,
        poll_interval: float = 10.0,
        on_state: Optional[Callable[[JobState], None]] = None,
        invoke: Optional[Callable[..., Awaitable[Any]]] = None,
    ):
        self.gateway = gateway
        self.handle = handle
        self.token = token
        self.poll_interval = poll_interval
        self.on_state = on_state
        self.invoke = invoke
        self.state = JobState.SUBMITTED
        self.polls = 0
        self.blob: Optional[str] = None

    def _transition(self, state: JobState) -> None:
        logger.debug(f"🎬 Video job {self.handle.name}: {self.state.value} -> {state.value}")
        self.state = state
        if self.on_state is not None:
            self.on_state(state)

    async def _call(self, func, *args):
        if self.invoke is None:
            return await func(*args)
        return await self.invoke(func, *args)

    async def run(self) -> Optional[str]:
        """
        Drives the job to a terminal state.

        Returns the local blob reference, or None when cancelled. A blob
        fetched before a late cancel is released, never returned.

        Raises:
            BackendError: the operation failed or finished without a URI.
        """
        try:
            return await self._run()
        except GenerationCancelled:
            self._transition(JobState.CANCELLED)
            logger.info(f"🛑 Video job {self.handle.name} cancelled after {self.polls} polls")
            return None
        except Exception:
            self._transition(JobState.FAILED)
            raise

    async def _run(self) -> str:
        self.token.raise_if_cancelled()
        self._transition(JobState.POLLING)
        handle = self.handle
        while not handle.done:
            await self.token.sleep(self.poll_interval)
            handle = await self._call(self.gateway.poll_operation_async, handle)
            self.polls += 1
            self.token.raise_if_cancelled()
        self.handle = handle

        if handle.error:
            raise BackendError(f"Video generation failed: {handle.error}")
        if not handle.uri:
            raise BackendError(NO_VIDEO_URL_MESSAGE)

        self._transition(JobState.FETCHING)
        blob = await self._call(self.gateway.fetch_as_local_blob_async, handle.uri)
        if self.token.cancelled:
            await self.gateway.release_blob_async(blob)
            raise GenerationCancelled("Operation cancelled")
        self.blob = blob
        self._transition(JobState.DONE)
        return blob
