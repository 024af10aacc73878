"""
MB7544-compatible exponential weighted average filter.

Mimics the sensor's internal filtering:
- recent-biased exponential weighted average
- rate limited to a maximum change per reading (1 mm by default)
- 40 reading initialization period for stabilization
"""
import logging
import math
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_INIT_PERIOD = 40
DEFAULT_RATE_LIMIT_MM = 1.0
DEFAULT_ALPHA = 0.2


class SensorFilter:
    """Per-reading smoother. Pure arithmetic on its own state, no I/O."""

    def __init__(
        self,
        init_period: int = DEFAULT_INIT_PERIOD,
        max_rate_limit_mm: float = DEFAULT_RATE_LIMIT_MM,
        alpha: float = DEFAULT_ALPHA,
    ):
        """
        Args:
            init_period: Number of readings before the filter is considered stable
            max_rate_limit_mm: Maximum change allowed per reading (mm)
            alpha: Smoothing factor (0.0-1.0), higher = more responsive to changes
        """
        self.init_period = init_period
        self.max_rate_limit_mm = max_rate_limit_mm
        if math.isnan(alpha):
            logger.warning(f"Invalid filter alpha {alpha}, using {DEFAULT_ALPHA}")
            alpha = DEFAULT_ALPHA
        self.alpha = min(max(alpha, 0.0), 1.0)
        self._filtered_value: Optional[float] = None
        self._reading_count = 0

    @property
    def reading_count(self) -> int:
        return self._reading_count

    def current_value(self) -> Optional[float]:
        return self._filtered_value

    def is_initialized(self) -> bool:
        """True once the initialization period has elapsed. Informational only."""
        return self._reading_count >= self.init_period

    def update(self, raw_reading: float) -> float:
        """Feed one raw reading and return the filtered value."""
        self._reading_count += 1

        if self._filtered_value is None:
            self._filtered_value = raw_reading
            logger.debug(f"Filter initialized with first reading: {raw_reading:.2f}mm")
            return raw_reading

        current = self._filtered_value
        ema_value = self.alpha * raw_reading + (1.0 - self.alpha) * current

        delta = ema_value - current
        limited_delta = min(max(delta, -self.max_rate_limit_mm), self.max_rate_limit_mm)
        new_value = current + limited_delta

        if self._reading_count <= self.init_period:
            logger.debug(
                f"Filter initializing ({self._reading_count}/{self.init_period}): "
                f"raw={raw_reading:.2f}mm, ema={ema_value:.2f}mm, rate_limited={new_value:.2f}mm"
            )
        elif abs(delta - limited_delta) > 0.001:
            logger.debug(
                f"Rate limit applied: raw={raw_reading:.2f}mm, ema={ema_value:.2f}mm, "
                f"delta={delta:.2f}mm, limited={limited_delta:.2f}mm, final={new_value:.2f}mm"
            )

        self._filtered_value = new_value
        return new_value

    def reset(self):
        """Forget all state (equivalent to pulling the sensor's RX pin low)."""
        logger.debug("Filter reset")
        self._filtered_value = None
        self._reading_count = 0
