import asyncio
import math

import pytest

from snowgauge.core.channel import Channel
from snowgauge.core.processing.sensor_filter import SensorFilter
from snowgauge.core.services.simulator import Simulator, simulated_distance


class TestSimulatedDistance:

    def test_starts_at_base_distance(self):
        assert simulated_distance(1000.0, 0.0) == 1000.0

    def test_snow_accumulates(self):
        # Both sinusoids are back at zero after 8 minutes
        assert simulated_distance(1000.0, 8.0) == pytest.approx(1000.0 - 16.0)

    def test_includes_noise(self):
        assert simulated_distance(1000.0, 0.0, noise=0.5) == 1000.5

    def test_never_negative(self):
        assert simulated_distance(5.0, 60.0) == 0.0


class TestSimulator:

    @pytest.mark.asyncio
    async def test_emits_until_cancelled(self, cancel_token):
        channel = Channel()
        simulator = Simulator(1000.0, channel, cancel_token, interval=0.01)
        task = asyncio.create_task(simulator.run())

        values = []
        async for value in channel:
            values.append(value)
            if len(values) == 3:
                cancel_token.cancel()
        await asyncio.wait_for(task, timeout=1.0)

        assert len(values) >= 3
        assert all(abs(v - 1000.0) < 5.0 for v in values)

    @pytest.mark.asyncio
    async def test_stops_when_channel_gone(self, cancel_token):
        channel = Channel()
        channel.close_receiver()
        simulator = Simulator(1000.0, channel, cancel_token, interval=10.0)

        await asyncio.wait_for(simulator.run(), timeout=1.0)
        assert not cancel_token.is_cancelled()

    @pytest.mark.asyncio
    async def test_cancel_interrupts_interval(self, cancel_token):
        channel = Channel()
        simulator = Simulator(1000.0, channel, cancel_token, interval=30.0)
        task = asyncio.create_task(simulator.run())

        assert await asyncio.wait_for(channel.recv(), timeout=1.0) is not None
        cancel_token.cancel()
        await asyncio.wait_for(task, timeout=1.0)
        assert await channel.recv() is None

    @pytest.mark.asyncio
    async def test_applies_shared_filter(self, cancel_token):
        channel = Channel()
        sensor_filter = SensorFilter(40, 0.0, 0.2)  # rate limit 0 freezes the first value
        simulator = Simulator(1000.0, channel, cancel_token, sensor_filter=sensor_filter,
                              interval=0.01, log_distance=True)
        task = asyncio.create_task(simulator.run())

        values = []
        async for value in channel:
            values.append(value)
            if len(values) == 5:
                cancel_token.cancel()
        await asyncio.wait_for(task, timeout=1.0)

        assert sensor_filter.reading_count == len(values)
        assert all(math.isclose(v, values[0]) for v in values)
