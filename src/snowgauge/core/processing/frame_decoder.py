"""
Decoder for the ultrasonic sensor's serial output.

Each measurement is a 6 byte frame: b"R" + 4 ASCII digits + b"\\r",
e.g. b"R1234\\r" for 1234 mm. Bytes are collected into a fixed window; when
the window is full but does not start with the marker and end with the
terminator, the window is realigned on the next marker so that bytes already
received after it are not lost.
"""
import logging
from typing import Iterator, Optional

logger = logging.getLogger(__name__)

FRAME_SIZE = 6
FRAME_MARKER = ord("R")
FRAME_TERMINATOR = ord("\r")


class FrameDecoder:
    """Turns a raw byte stream into distance values in millimetres."""

    def __init__(self):
        self._window = bytearray(FRAME_SIZE)
        self._offset = 0
        self.frames_decoded = 0
        self.decode_errors = 0
        self.resyncs = 0

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def remaining(self) -> int:
        """Bytes needed before the window is evaluated again."""
        return FRAME_SIZE - self._offset

    @property
    def window(self) -> bytes:
        return bytes(self._window[:self._offset])

    def reset(self):
        self._offset = 0

    def push(self, chunk: bytes) -> Optional[float]:
        """
        Append up to `remaining` bytes to the window.
        Returns a distance when this chunk completes a valid frame.
        """
        if len(chunk) > self.remaining:
            raise ValueError(f"chunk of {len(chunk)} bytes exceeds remaining {self.remaining}")

        self._window[self._offset:self._offset + len(chunk)] = chunk
        self._offset += len(chunk)
        if self._offset < FRAME_SIZE:
            return None

        if self._window[0] != FRAME_MARKER or self._window[-1] != FRAME_TERMINATOR:
            self._resync()
            return None

        self._offset = 0
        payload = bytes(self._window[1:FRAME_SIZE - 1])
        # float() alone would also take "+nan", "-inf", " 100" or "1_00"
        if not payload.isdigit():
            self.decode_errors += 1
            logger.error(f"Error converting distance to number: {payload!r}")
            return None

        self.frames_decoded += 1
        return float(payload)

    def feed(self, data: bytes) -> Iterator[float]:
        """Decode an arbitrary amount of bytes, yielding every completed distance."""
        view = memoryview(data)
        while len(view) > 0:
            take = min(self.remaining, len(view))
            distance = self.push(bytes(view[:take]))
            view = view[take:]
            if distance is not None:
                yield distance

    def _resync(self):
        self.decode_errors += 1
        self.resyncs += 1
        logger.error(f"Invalid data format received: {bytes(self._window)!r}")

        # Byte 0 already failed as a frame start, so look past it
        pos = self._window.find(FRAME_MARKER, 1)
        if pos == -1:
            self._offset = 0
            logger.error("No sync marker found, resetting buffer")
            return

        self._window[:FRAME_SIZE - pos] = self._window[pos:]
        self._offset = FRAME_SIZE - pos
        logger.error(f"Resynchronized: found 'R' at position {pos}, new offset {self._offset}")
