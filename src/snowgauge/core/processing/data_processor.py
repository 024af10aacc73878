import logging
import math
from typing import List, Optional, Sequence

from snowgauge.core.channel import Channel
from snowgauge.core.event_hub import Broadcaster
from snowgauge.core.models.filter_type import FilterType
from snowgauge.core.models.reading import Reading

logger = logging.getLogger(__name__)


def _nan_last(value: float):
    # NaN compares greater than every number and equal to other NaNs
    if math.isnan(value):
        return (1, 0.0)
    return (0, value)


def trimmed_mean(batch: Sequence[float], trim_percentage: float) -> float:
    """
    Mean of the batch after dropping floor(trim_percentage * n) values from each
    end of the sorted batch. When that would leave nothing, the whole batch is
    averaged. NaNs sort last; any that survive the trim are left out of the mean.
    """
    n = len(batch)
    ordered = sorted(batch, key=_nan_last)
    trim = int(trim_percentage * n)
    kept = ordered[trim:n - trim] if n > 2 * trim else ordered

    finite = [v for v in kept if not math.isnan(v)]
    if not finite:
        return math.nan
    return sum(finite) / len(finite)


def reduce_batch(batch: Sequence[float], filter_type: FilterType, trim_percentage: float) -> float:
    """Reduce a full batch to one distance according to the filter mode."""
    if filter_type.uses_trimmed_mean:
        return trimmed_mean(batch, trim_percentage)
    # Exponential smoothing (if any) already ran per reading
    return sum(batch) / len(batch)


class DataProcessor:
    """
    Batch-processing task: collects values from the acquisition channel,
    reduces each full batch to a Reading and publishes it.
    """

    def __init__(
        self,
        broadcaster: Broadcaster,
        station_name: str,
        batch_size: int,
        filter_type: FilterType,
        trim_percentage: float,
    ):
        self.broadcaster = broadcaster
        self.station_name = station_name
        self.batch_size = batch_size
        self.filter_type = filter_type
        self.trim_percentage = trim_percentage
        self.batch: List[float] = []
        self.readings_published = 0
        self.last_reading: Optional[Reading] = None

    def add_value(self, distance: float) -> Optional[Reading]:
        """Append one value; returns the published Reading when the batch completes."""
        self.batch.append(distance)
        if len(self.batch) < self.batch_size:
            return None

        n = len(self.batch)
        try:
            average = reduce_batch(self.batch, self.filter_type, self.trim_percentage)
        finally:
            self.batch.clear()
        self._log_reduction(average, n)

        if not math.isfinite(average):
            logger.warning(f"Discarding batch of {n} readings: no finite result ({average})")
            return None

        reading = Reading(station_name=self.station_name, distance=int(average))
        self.broadcaster.publish(reading)
        self.readings_published += 1
        self.last_reading = reading
        return reading

    async def run(self, channel: Channel[float]):
        """Consume until the producer closes the channel."""
        logger.info(f"DataProcessor started (batch size {self.batch_size}, filter {self.filter_type})")
        try:
            async for distance in channel:
                self.add_value(distance)
        finally:
            channel.close_receiver()
            if self.batch:
                logger.debug(f"Discarding incomplete batch of {len(self.batch)} readings")
                self.batch.clear()
            logger.info("DataProcessor stopped")

    def _log_reduction(self, average: float, n: int):
        if self.filter_type.uses_trimmed_mean:
            trim = int(self.trim_percentage * n)
            if self.filter_type == FilterType.BOTH:
                logger.info(
                    f"Combined filter result: {average:.2f}mm "
                    f"(from {n} pre-filtered readings, trimmed {trim} from each end)"
                )
            else:
                logger.info(f"Trimmed mean: {average:.2f}mm (from {n} readings, trimmed {trim} from each end)")
        else:
            logger.info(f"Average distance: {average:.2f}mm (from {n} readings)")
