import logging
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class SensorState(Enum):
    """Serial link states."""
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    STOPPED = "stopped"


@dataclass
class ReconnectBackoff:
    """Exponential backoff between attempts to open the serial port."""
    initial_reconnect_delay: float = 1.0  # Initial delay in seconds
    max_reconnect_delay: float = 60.0  # Maximum delay in seconds
    backoff_multiplier: float = 2.0  # Multiply delay by this factor each retry

    reconnect_attempts: int = 0
    current_backoff_delay: float = field(default=0.0)

    def __post_init__(self):
        self.current_backoff_delay = self.initial_reconnect_delay

    def next_delay(self) -> float:
        """Get the delay for the next attempt and grow the backoff, capped at max."""
        delay = self.current_backoff_delay
        self.reconnect_attempts += 1
        self.current_backoff_delay = min(
            self.current_backoff_delay * self.backoff_multiplier,
            self.max_reconnect_delay
        )
        return delay

    def reset(self):
        """Back to the initial delay (after a successful open)."""
        if self.reconnect_attempts:
            logger.debug(f"Backoff reset after {self.reconnect_attempts} attempt(s)")
        self.current_backoff_delay = self.initial_reconnect_delay
        self.reconnect_attempts = 0
