import asyncio
import logging
import math
from typing import Any, Awaitable, Callable, Optional

from photoshoot.core.errors import GenerationCancelled, TransientBackendError

logger = logging.getLogger("PhotoshootEngine")

EXHAUSTED_MESSAGE = "The generation service is busy right now. Please try again in a moment."

RetryCallback = Callable[[int, float], None]


def retry_message(attempt: int, delay: float) -> str:
    return f"API is busy. Retrying in {math.ceil(delay)}s... (Attempt {attempt})"


async def with_retry(
    func: Callable[..., Awaitable[Any]],
    *args,
    on_retry: Optional[RetryCallback] = None,
    max_attempts: int = 3,
    base_delay: float = 2.0,
    backoff: float = 2.0,
    token=None,
    **kwargs,
) -> Any:
    """
    Awaits `func(*args, **kwargs)`, retrying transient backend failures.

    ConnectionError and TimeoutError (TransientBackendError included) are
    retried with exponential backoff; `on_retry(attempt, delay)` fires before
    each wait with the number of the attempt that just failed. Everything
    else propagates immediately. Backoff waits go through `token.sleep` when a
    cancellation token is given, so a cancel interrupts them.

    Raises:
        TransientBackendError: every attempt failed with a transient error.
        GenerationCancelled: the token was cancelled before or between attempts.
    """
    delay = base_delay
    for attempt in range(1, max_attempts + 1):
        if token is not None:
            token.raise_if_cancelled()
        try:
            return await func(*args, **kwargs)
        except GenerationCancelled:
            raise
        except (ConnectionError, TimeoutError) as e:
            if attempt == max_attempts:
                logger.error(f"❌ Operation failed after {max_attempts} attempts: {e}")
                raise TransientBackendError(EXHAUSTED_MESSAGE) from e
            logger.warning(f"⚠️ [Retry {attempt}/{max_attempts}] Transient error: {e}. Waiting {delay}s...")
            if on_retry is not None:
                on_retry(attempt, delay)
            if token is not None:
                await token.sleep(delay)
            else:
                await asyncio.sleep(delay)
            delay *= backoff
        except (ValueError, RuntimeError, TypeError) as e:
            logger.critical(f"🛑 Non-retryable failure detected: {e}")
            raise
    raise TransientBackendError(EXHAUSTED_MESSAGE)

