from typing import Optional
from pydantic import BaseModel

from snowgauge.core.models.reading import Reading


class AppHealthOK(BaseModel):
    status: str
    app: str


class ReadingMessage(BaseModel):
    station_name: str
    distance: int
    system_uptime: Optional[float] = None
    application_uptime: Optional[float] = None

    @classmethod
    def from_reading(cls, reading: Reading) -> "ReadingMessage":
        return cls(
            station_name=reading.station_name,
            distance=reading.distance,
            system_uptime=reading.system_uptime,
            application_uptime=reading.application_uptime,
        )


class StatusResponse(BaseModel):
    station_name: Optional[str]
    running: bool
    source: Optional[str]
    device_state: Optional[str]
    filter_type: Optional[str]
    subscribers: int
    readings_published: int
    decode_errors: int
