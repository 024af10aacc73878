# External libs
import asyncio
import logging
from typing import Optional, Union

# Internal libs
from snowgauge.core.cancellation import CancellationToken
from snowgauge.core.channel import Channel
from snowgauge.core.config_loader import GaugeSettings
from snowgauge.core.event_hub import Broadcaster, broadcaster as default_broadcaster
from snowgauge.core.processing.data_processor import DataProcessor
from snowgauge.core.processing.sensor_filter import SensorFilter
from snowgauge.core.sensor_reconnection import SensorState
from snowgauge.core.services.serial_handler import SerialReader
from snowgauge.core.services.simulator import Simulator

logger = logging.getLogger(__name__)


class ServiceManager:
    """
    Owns the acquisition and batch-processing tasks.

    Shutdown order: cancel the token, wait for the acquisition task (its exit
    closes the raw value channel), wait for the processing task to drain the
    channel, then end every subscriber stream.
    """

    def __init__(self, broadcaster: Broadcaster = default_broadcaster):
        self.broadcaster = broadcaster
        self.settings: Optional[GaugeSettings] = None
        self.cancel_token: Optional[CancellationToken] = None
        self.processor: Optional[DataProcessor] = None
        self.source: Optional[Union[SerialReader, Simulator]] = None
        self._source_task: Optional[asyncio.Task] = None
        self._processing_task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._processing_task is not None

    async def start_services(self, settings: GaugeSettings):
        """Start the processing task and the serial reader (or simulator)."""
        if self.running:
            return

        logger.info("Starting background services...")
        self.settings = settings
        self.cancel_token = CancellationToken()
        channel: Channel[float] = Channel()

        sensor_filter = None
        params = settings.filter_params()
        if params is not None:
            init_period, rate_limit, alpha = params
            logger.info(
                f"Initializing sensor filter: init_period={init_period}, rate_limit={rate_limit}mm, alpha={alpha}"
            )
            sensor_filter = SensorFilter(init_period, rate_limit, alpha)

        self.processor = DataProcessor(
            self.broadcaster,
            station_name=settings.station_name,
            batch_size=settings.batch_size,
            filter_type=settings.filter_type,
            trim_percentage=settings.trim_percentage,
        )
        self._processing_task = asyncio.create_task(self.processor.run(channel), name="batch-processing")

        if settings.simulator:
            self.source = Simulator(
                settings.simulator_base_distance,
                channel,
                self.cancel_token,
                sensor_filter=sensor_filter,
                log_distance=settings.log_distance,
            )
            self._source_task = asyncio.create_task(self.source.run(), name="simulator")
        else:
            self.source = SerialReader(
                settings.port,
                channel,
                self.cancel_token,
                sensor_filter=sensor_filter,
                log_distance=settings.log_distance,
            )
            # Blocking serial I/O stays off the event loop
            self._source_task = asyncio.create_task(asyncio.to_thread(self.source.run), name="serial-reader")

        logger.info("Background services started.")

    async def stop_services(self):
        """Stop background services in order."""
        if not self.running:
            return

        logger.info("Shutdown signal received, stopping background services...")
        self.cancel_token.cancel()

        await self._wait("Data source", self._source_task)
        await self._wait("Processing", self._processing_task)
        self._source_task = None
        self._processing_task = None

        self.broadcaster.close()
        logger.info("All tasks completed")

    async def _wait(self, name: str, task: Optional[asyncio.Task]):
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise
            logger.warning(f"{name} task was cancelled")
        except Exception:
            logger.exception(f"{name} task crashed")

    def source_name(self) -> Optional[str]:
        if isinstance(self.source, Simulator):
            return "simulator"
        if isinstance(self.source, SerialReader):
            return "serial"
        return None

    def device_state(self) -> Optional[SensorState]:
        if isinstance(self.source, SerialReader):
            return self.source.state
        return None

    def decode_errors(self) -> int:
        if isinstance(self.source, SerialReader):
            return self.source.decoder.decode_errors
        return 0


service_manager = ServiceManager()
