import asyncio
import math

import pytest

from snowgauge.core.channel import Channel
from snowgauge.core.models.filter_type import FilterType
from snowgauge.core.models.reading import Reading
from snowgauge.core.processing.data_processor import DataProcessor, reduce_batch, trimmed_mean
from snowgauge.core.processing.sensor_filter import SensorFilter


class TestTrimmedMean:
    """Batch reduction."""

    def test_trims_each_end(self):
        batch = [1000.0] * 8 + [0.0, 5000.0]
        # floor(0.15 * 10) = 1 value dropped from each end
        assert trimmed_mean(batch, 0.15) == 1000.0

    def test_matches_sorted_slice(self):
        batch = [7.0, 1.0, 9.0, 3.0, 5.0, 2.0, 8.0, 4.0, 6.0, 10.0]
        trim = math.floor(0.2 * len(batch))
        ordered = sorted(batch)
        expected = sum(ordered[trim:len(batch) - trim]) / (len(batch) - 2 * trim)
        assert trimmed_mean(batch, 0.2) == pytest.approx(expected)

    def test_zero_trim_is_plain_mean(self):
        batch = [1.0, 2.0, 3.0, 10.0]
        assert trimmed_mean(batch, 0.0) == 4.0

    def test_degenerate_trim_falls_back_to_full_mean(self):
        # floor(0.5 * 4) = 2 and 4 <= 2 * 2, so nothing is trimmed
        batch = [1.0, 2.0, 3.0, 10.0]
        assert trimmed_mean(batch, 0.5) == 4.0

    def test_half_trim_with_odd_batch_keeps_median(self):
        batch = [1.0, 50.0, 2.0, 3.0, 4.0]
        # floor(0.5 * 5) = 2 and 5 > 4, so only the median survives
        assert trimmed_mean(batch, 0.5) == 3.0

    def test_nan_sorts_last_and_is_trimmed(self):
        batch = [float("nan")] + [1000.0] * 9
        assert trimmed_mean(batch, 0.15) == 1000.0

    def test_multiple_nans_do_not_poison_result(self):
        nan = float("nan")
        batch = [nan, 10.0, nan, 20.0, nan, 30.0, 40.0, 50.0, 60.0, 70.0]
        # Sorted: 10..70 then three NaNs; trim 1 drops 10 and one NaN
        result = trimmed_mean(batch, 0.15)
        assert not math.isnan(result)
        assert result == pytest.approx(sum([20.0, 30.0, 40.0, 50.0, 60.0, 70.0]) / 6)

    def test_nan_larger_than_any_number(self):
        batch = [float("nan"), 1e308, -1e308] + [0.0] * 7
        assert trimmed_mean(batch, 0.2) == 0.0

    def test_all_nan_is_nan(self):
        assert math.isnan(trimmed_mean([float("nan")] * 10, 0.15))

    def test_input_order_untouched(self):
        batch = [3.0, 1.0, 2.0] * 4
        trimmed_mean(batch, 0.15)
        assert batch == [3.0, 1.0, 2.0] * 4


class TestReduceBatch:

    @pytest.mark.parametrize("filter_type", [FilterType.NONE, FilterType.EXPONENTIAL])
    def test_simple_modes_use_plain_mean(self, filter_type):
        batch = [1000.0] * 9 + [2000.0]
        assert reduce_batch(batch, filter_type, 0.15) == 1100.0

    @pytest.mark.parametrize("filter_type", [FilterType.TRIMMED_MEAN, FilterType.BOTH])
    def test_trimming_modes(self, filter_type):
        batch = [1000.0] * 9 + [2000.0]
        assert reduce_batch(batch, filter_type, 0.15) == 1000.0


class TestDataProcessor:
    """Batching and publishing."""

    def make_processor(self, broadcaster, filter_type=FilterType.BOTH, batch_size=10):
        return DataProcessor(
            broadcaster,
            station_name="test-station",
            batch_size=batch_size,
            filter_type=filter_type,
            trim_percentage=0.15,
        )

    def test_publishes_when_batch_full(self, broadcaster):
        processor = self.make_processor(broadcaster)
        for _ in range(9):
            assert processor.add_value(1000.0) is None
        reading = processor.add_value(1000.0)
        assert reading == Reading(station_name="test-station", distance=1000)
        assert processor.batch == []
        assert processor.readings_published == 1

    def test_distance_truncated_toward_zero(self, broadcaster):
        processor = self.make_processor(broadcaster, FilterType.NONE)
        reading = None
        for _ in range(10):
            reading = processor.add_value(999.99)
        assert reading.distance == 999

    def test_non_finite_batch_not_published(self, broadcaster):
        processor = self.make_processor(broadcaster, FilterType.NONE)
        for _ in range(9):
            processor.add_value(1000.0)
        assert processor.add_value(float("nan")) is None
        assert processor.batch == []
        assert processor.readings_published == 0

    @pytest.mark.asyncio
    async def test_end_to_end_constant_input(self, broadcaster):
        """Filter -> batch -> reduce with constant 1000 mm yields exactly 1000."""
        subscriber = broadcaster.subscribe()
        sensor_filter = SensorFilter(40, 1.0, 0.2)
        channel: Channel[float] = Channel()
        processor = self.make_processor(broadcaster, FilterType.BOTH)

        for _ in range(10):
            channel.send(sensor_filter.update(1000.0))
        channel.close()
        await processor.run(channel)

        reading = await asyncio.wait_for(subscriber.recv(), timeout=1)
        assert reading.distance == 1000
        assert reading.station_name == "test-station"
        assert reading.system_uptime is None and reading.application_uptime is None

    @pytest.mark.asyncio
    async def test_partial_batch_discarded_on_end_of_stream(self, broadcaster):
        subscriber = broadcaster.subscribe()
        channel: Channel[float] = Channel()
        processor = self.make_processor(broadcaster)

        for i in range(15):
            channel.send(1000.0 + i)
        channel.close()
        await asyncio.wait_for(processor.run(channel), timeout=1)

        assert processor.readings_published == 1
        assert processor.batch == []
        assert channel.is_closed
        # 1000..1009 with one value trimmed from each end
        reading = await asyncio.wait_for(subscriber.recv(), timeout=1)
        assert reading.distance == 1004

    @pytest.mark.asyncio
    async def test_readings_published_in_batch_order(self, broadcaster):
        subscriber = broadcaster.subscribe()
        channel: Channel[float] = Channel()
        processor = self.make_processor(broadcaster, FilterType.NONE)

        for value in [100.0] * 10 + [200.0] * 10 + [300.0] * 10:
            channel.send(value)
        channel.close()
        await processor.run(channel)
        broadcaster.close()

        distances = [reading.distance async for reading in subscriber]
        assert distances == [100, 200, 300]
