"""Tests for the condition poller."""

import asyncio

import pytest

from dataunion_relayer.errors import ChainCallError, InvalidArgument, WaitTimeout
from dataunion_relayer.utils.poller import wait_for


class Probe:
    """Returns None until called ``ready_after`` times."""

    def __init__(self, ready_after: int, value="done"):
        self.ready_after = ready_after
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.value if self.calls >= self.ready_after else None


class TestWaitFor:

    @pytest.mark.asyncio
    async def test_returns_first_result(self):
        probe = Probe(ready_after=1)
        assert await wait_for(probe, 0.01, 1) == "done"
        assert probe.calls == 1

    @pytest.mark.asyncio
    async def test_retries_until_ready(self):
        probe = Probe(ready_after=3, value=42)
        assert await wait_for(probe, 0.01, 1) == 42
        assert probe.calls == 3

    @pytest.mark.asyncio
    async def test_falsy_non_none_result_counts(self):
        assert await wait_for(lambda: 0, 0.01, 1) == 0

    @pytest.mark.asyncio
    async def test_timeout(self):
        probe = Probe(ready_after=10_000)
        with pytest.raises(WaitTimeout):
            await wait_for(probe, 0.01, 0.05)
        assert probe.calls >= 2

    @pytest.mark.asyncio
    async def test_zero_timeout_probes_once(self):
        probe = Probe(ready_after=2)
        with pytest.raises(WaitTimeout):
            await wait_for(probe, 10, 0)
        assert probe.calls == 1

    @pytest.mark.asyncio
    async def test_zero_timeout_success(self):
        assert await wait_for(Probe(ready_after=1), 10, 0) == "done"

    @pytest.mark.asyncio
    async def test_predicate_errors_propagate_immediately(self):
        calls = 0

        def failing():
            nonlocal calls
            calls += 1
            raise ChainCallError("connection refused")

        with pytest.raises(ChainCallError):
            await wait_for(failing, 0.01, 1)
        assert calls == 1

    @pytest.mark.asyncio
    async def test_async_predicate(self):
        probe = Probe(ready_after=2)

        async def check():
            return probe()

        assert await wait_for(check, 0.01, 1) == "done"

    @pytest.mark.asyncio
    async def test_cancellation(self):
        task = asyncio.create_task(wait_for(lambda: None, 0.01, 60))
        await asyncio.sleep(0.03)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    @pytest.mark.asyncio
    async def test_negative_arguments_rejected(self):
        with pytest.raises(InvalidArgument):
            await wait_for(lambda: 1, -1, 1)

    @pytest.mark.asyncio
    async def test_zero_interval_with_timeout_rejected(self):
        probe = Probe(ready_after=10_000)
        with pytest.raises(InvalidArgument, match="interval must be positive"):
            await wait_for(probe, 0, 1)
        assert probe.calls == 0

    @pytest.mark.asyncio
    async def test_zero_interval_single_probe_allowed(self):
        assert await wait_for(Probe(ready_after=1), 0, 0) == "done"

    def test_timeout_is_a_timeout_error(self):
        assert issubclass(WaitTimeout, TimeoutError)
