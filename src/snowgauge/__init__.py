"""Snow depth gauge: ultrasonic distance acquisition, filtering and streaming."""

__version__ = "0.1.0"
