import asyncio
import threading
import time

import pytest

from snowgauge.core.cancellation import CancellationToken


class TestCancellationToken:

    def test_cancel_is_idempotent(self, cancel_token):
        assert cancel_token.is_cancelled() is False
        cancel_token.cancel()
        cancel_token.cancel()
        assert cancel_token.is_cancelled() is True

    def test_wait_times_out(self, cancel_token):
        assert cancel_token.wait(0.01) is False

    def test_wait_wakes_on_cancel_from_other_thread(self, cancel_token):
        threading.Timer(0.05, cancel_token.cancel).start()
        start = time.monotonic()
        assert cancel_token.wait(5.0) is True
        assert time.monotonic() - start < 2.0

    @pytest.mark.asyncio
    async def test_async_sleep_completes(self, cancel_token):
        assert await cancel_token.sleep(0.01) is False

    @pytest.mark.asyncio
    async def test_async_sleep_interrupted(self, cancel_token):
        asyncio.get_running_loop().call_later(0.05, cancel_token.cancel)
        start = time.monotonic()
        assert await cancel_token.sleep(5.0) is True
        assert time.monotonic() - start < 1.0

    @pytest.mark.asyncio
    async def test_async_sleep_returns_immediately_when_cancelled(self):
        token = CancellationToken()
        token.cancel()
        assert await token.sleep(5.0) is True
