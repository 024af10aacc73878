"""Errors that are allowed to reach the process boundary."""


class SnowGaugeError(Exception):
    """Base class for fatal service errors."""


class ConfigError(SnowGaugeError):
    """Raised when the configuration is rejected at startup."""

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("; ".join(problems))


class ListenError(SnowGaugeError):
    """Raised when the HTTP listener cannot be bound."""
