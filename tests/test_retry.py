import asyncio
from unittest.mock import MagicMock, patch

import pytest

from photoshoot.core.errors import BackendError, GenerationCancelled, TransientBackendError, ValidationError
from photoshoot.pipeline.cancellation import CancellationToken
from photoshoot.utils.decorators import EXHAUSTED_MESSAGE, retry_message, with_retry


def flaky(failures, result="ok", error=None):
    """Async callable failing `failures` times before returning `result`."""
    calls = {"n": 0}

    async def call():
        calls["n"] += 1
        if calls["n"] <= failures:
            raise error or TransientBackendError("503 UNAVAILABLE", status_code=503)
        return result

    return call, calls


def test_retry_message_rounds_delay_up():
    assert retry_message(1, 2) == "API is busy. Retrying in 2s... (Attempt 1)"
    assert retry_message(2, 0.5) == "API is busy. Retrying in 1s... (Attempt 2)"


def test_with_retry_recovers_from_transient_errors():
    call, calls = flaky(2)
    on_retry = MagicMock()

    result = asyncio.run(with_retry(call, on_retry=on_retry, max_attempts=3, base_delay=0))

    assert result == "ok"
    assert calls["n"] == 3
    assert [c.args[0] for c in on_retry.call_args_list] == [1, 2]


def test_with_retry_backs_off_exponentially():
    call, _ = flaky(2)
    on_retry = MagicMock()

    async def no_wait(_seconds):
        return None

    with patch("photoshoot.utils.decorators.asyncio.sleep", side_effect=no_wait) as sleep:
        asyncio.run(with_retry(call, on_retry=on_retry, max_attempts=3, base_delay=2.0, backoff=2.0))

    assert [c.args[0] for c in sleep.call_args_list] == [2.0, 4.0]
    on_retry.assert_any_call(2, 4.0)


def test_with_retry_exhaustion_raises_friendly_error():
    call, calls = flaky(5)

    with pytest.raises(TransientBackendError) as exc_info:
        asyncio.run(with_retry(call, max_attempts=3, base_delay=0))

    assert str(exc_info.value) == EXHAUSTED_MESSAGE
    assert calls["n"] == 3


def test_with_retry_does_not_retry_permanent_errors():
    for error in (BackendError("bad request"), ValidationError("missing image")):
        call, calls = flaky(1, error=error)
        on_retry = MagicMock()
        with pytest.raises(type(error)):
            asyncio.run(with_retry(call, on_retry=on_retry, max_attempts=3, base_delay=0))
        assert calls["n"] == 1
        on_retry.assert_not_called()


def test_with_retry_stops_on_cancel_during_backoff():
    token = CancellationToken()
    call, calls = flaky(5)

    def cancel_on_retry(attempt, delay):
        token.cancel()

    with pytest.raises(GenerationCancelled):
        asyncio.run(with_retry(call, on_retry=cancel_on_retry, max_attempts=3, base_delay=30, token=token))

    assert calls["n"] == 1
