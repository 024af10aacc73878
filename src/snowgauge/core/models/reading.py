"""
Reading data model.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Reading:
    """
    One published distance measurement, produced once per reduced batch.
    Uptime fields are left unset by the pipeline.
    """
    station_name: str
    distance: int  # millimetres
    system_uptime: Optional[float] = None
    application_uptime: Optional[float] = None
