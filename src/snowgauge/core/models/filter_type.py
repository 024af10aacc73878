"""Filter mode enumeration."""
from enum import Enum


class FilterType(Enum):
    """Which noise-reduction stages run on the distance stream."""
    NONE = "none"
    EXPONENTIAL = "exponential"
    TRIMMED_MEAN = "trimmed-mean"
    BOTH = "both"

    @classmethod
    def parse(cls, value: str) -> "FilterType":
        """Case-insensitive lookup accepting the usual aliases."""
        key = value.strip().lower()
        for filter_type, aliases in _ALIASES.items():
            if key in aliases:
                return filter_type
        raise ValueError(
            f"Invalid filter type '{value}'. Valid options: none, exponential, trimmed-mean, both"
        )

    @property
    def uses_exponential(self) -> bool:
        return self in (FilterType.EXPONENTIAL, FilterType.BOTH)

    @property
    def uses_trimmed_mean(self) -> bool:
        return self in (FilterType.TRIMMED_MEAN, FilterType.BOTH)

    def __str__(self) -> str:
        return self.value


_ALIASES = {
    FilterType.NONE: {"none"},
    FilterType.EXPONENTIAL: {"exponential", "exp", "ema"},
    FilterType.TRIMMED_MEAN: {"trimmed-mean", "trimmed", "trimmedmean"},
    FilterType.BOTH: {"both", "combined"},
}
