import logging
from typing import Callable, Optional

import serial

from snowgauge.core.cancellation import CancellationToken
from snowgauge.core.channel import Channel
from snowgauge.core.processing.frame_decoder import FrameDecoder
from snowgauge.core.processing.sensor_filter import SensorFilter
from snowgauge.core.sensor_reconnection import ReconnectBackoff, SensorState

logger = logging.getLogger(__name__)

BAUDRATE = 9600
READ_TIMEOUT = 1.0  # Short so the loop notices cancellation quickly


def open_serial_port(port: str, baudrate: int = BAUDRATE, timeout: float = READ_TIMEOUT) -> serial.Serial:
    """Open the sensor port with its fixed 8N1 settings."""
    return serial.Serial(
        port=port,
        baudrate=baudrate,
        bytesize=serial.EIGHTBITS,
        parity=serial.PARITY_NONE,
        stopbits=serial.STOPBITS_ONE,
        timeout=timeout,
    )


class SerialReader:
    """
    Acquisition loop for the physical sensor.

    run() blocks and is meant for a worker thread. It keeps one port open at a
    time, decodes frames and forwards distances to the processing channel.
    Open failures and I/O errors are retried forever with exponential
    backoff; the loop only ends on cancellation or when the processing side
    stops listening. The channel is closed on every exit path.
    """

    def __init__(
        self,
        port: str,
        channel: Channel[float],
        cancel_token: CancellationToken,
        sensor_filter: Optional[SensorFilter] = None,
        log_distance: bool = False,
        backoff: Optional[ReconnectBackoff] = None,
        opener: Callable[[str], serial.Serial] = open_serial_port,
    ):
        self.port = port
        self.channel = channel
        self.cancel_token = cancel_token
        self.sensor_filter = sensor_filter
        self.log_distance = log_distance
        self.backoff = backoff or ReconnectBackoff()
        self.opener = opener
        self.decoder = FrameDecoder()
        self.state = SensorState.DISCONNECTED

    def run(self):
        logger.info(f"Started serial reader on port {self.port}")
        try:
            self._run()
        finally:
            self.state = SensorState.STOPPED
            self.channel.close()

    def _run(self):
        while not self.cancel_token.is_cancelled():
            self.state = SensorState.CONNECTING
            try:
                ser = self.opener(self.port)
            except (serial.SerialException, OSError) as e:
                self.state = SensorState.DISCONNECTED
                logger.error(f"Error opening serial port {self.port}: {e}")
            else:
                logger.info(f"Serial port {self.port} opened successfully")
                self.backoff.reset()
                self.state = SensorState.CONNECTED
                try:
                    keep_running = self._read_loop(ser)
                finally:
                    self._close(ser)
                if not keep_running:
                    return
                self.state = SensorState.DISCONNECTED

            delay = self.backoff.next_delay()
            logger.warning(f"Retrying serial port {self.port} in {delay:.1f}s")
            if self.cancel_token.wait(delay):
                logger.info("Serial reader received shutdown signal during backoff")
                return

        logger.info("Serial reader received shutdown signal")

    def _read_loop(self, ser: serial.Serial) -> bool:
        """Read until the link fails (True: reconnect) or the reader must stop (False)."""
        self.decoder.reset()
        while True:
            if self.cancel_token.is_cancelled():
                logger.info("Serial reader received shutdown signal")
                return False

            try:
                chunk = ser.read(self.decoder.remaining)
            except (serial.SerialException, OSError) as e:
                logger.error(f"Error reading from serial port: {e}")
                return True

            if not chunk:
                # Read timeout, nothing received yet
                continue

            distance = self.decoder.push(chunk)
            if distance is not None and not self._forward(distance):
                logger.error("Processing channel closed, stopping serial reader")
                return False

    def _forward(self, raw_distance: float) -> bool:
        if self.sensor_filter is None:
            if self.log_distance:
                logger.info(f"Received measurement: distance={raw_distance}")
            return self.channel.send(raw_distance)

        distance = self.sensor_filter.update(raw_distance)
        if self.log_distance:
            logger.info(
                f"Raw: {raw_distance:.2f}mm, Filtered: {distance:.2f}mm "
                f"(readings: {self.sensor_filter.reading_count}/{self.sensor_filter.init_period})"
            )
        return self.channel.send(distance)

    def _close(self, ser: serial.Serial):
        try:
            ser.close()
        except (serial.SerialException, OSError) as e:
            logger.debug(f"Error closing serial port {self.port}: {e}")
