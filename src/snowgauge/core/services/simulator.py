import logging
import math
import random
import time
from typing import Optional

from snowgauge.core.cancellation import CancellationToken
from snowgauge.core.channel import Channel
from snowgauge.core.processing.sensor_filter import SensorFilter

logger = logging.getLogger(__name__)

SNOWFALL_MM_PER_MINUTE = 2.0  # 120 mm/hour


def simulated_distance(base_distance: float, elapsed_minutes: float, noise: float = 0.0) -> float:
    """Distance to a snow surface rising steadily, with slow and fast sinusoidal wobble."""
    base_current_distance = base_distance - elapsed_minutes * SNOWFALL_MM_PER_MINUTE
    slow = 3.0 * math.sin(2.0 * math.pi * elapsed_minutes / 8.0)
    fast = 1.5 * math.sin(2.0 * math.pi * elapsed_minutes / 2.0)
    return max(0.0, base_current_distance + slow + fast + noise)


class Simulator:
    """
    Synthetic data source used when no sensor is attached.
    Same contract as SerialReader: one value per tick into the channel,
    stops on cancellation or when the channel is gone, closes it on exit.
    """

    def __init__(
        self,
        base_distance: float,
        channel: Channel[float],
        cancel_token: CancellationToken,
        sensor_filter: Optional[SensorFilter] = None,
        log_distance: bool = False,
        interval: float = 1.0,
    ):
        self.base_distance = base_distance
        self.channel = channel
        self.cancel_token = cancel_token
        self.sensor_filter = sensor_filter
        self.log_distance = log_distance
        self.interval = interval

    async def run(self):
        logger.info(f"Starting simulator with base_distance={self.base_distance}")
        start_time = time.monotonic()
        try:
            while not self.cancel_token.is_cancelled():
                elapsed_minutes = (time.monotonic() - start_time) / 60.0
                raw = simulated_distance(self.base_distance, elapsed_minutes, random.uniform(-1.0, 1.0))

                if not self._forward(raw):
                    logger.error("Processing channel closed, stopping simulator")
                    return
                if await self.cancel_token.sleep(self.interval):
                    break
            logger.info("Simulator received shutdown signal")
        finally:
            self.channel.close()

    def _forward(self, raw_distance: float) -> bool:
        if self.sensor_filter is None:
            if self.log_distance:
                logger.info(f"Simulated measurement: distance={raw_distance:.2f}")
            return self.channel.send(raw_distance)

        distance = self.sensor_filter.update(raw_distance)
        if self.log_distance:
            logger.info(
                f"Simulated: raw={raw_distance:.2f}mm, filtered={distance:.2f}mm "
                f"(readings: {self.sensor_filter.reading_count})"
            )
        return self.channel.send(distance)
