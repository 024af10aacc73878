from fastapi import APIRouter

from snowgauge.core.service_manager import service_manager
from snowgauge.schemas import StatusResponse

router = APIRouter(prefix="/status", tags=["status"])


@router.get("", response_model=StatusResponse)
async def get_status() -> StatusResponse:
    """
    Current state of the acquisition pipeline.
    Fields describing the pipeline are null while the services are not running.
    """
    settings = service_manager.settings
    processor = service_manager.processor
    device_state = service_manager.device_state()
    return StatusResponse(
        station_name=settings.station_name if settings else None,
        running=service_manager.running,
        source=service_manager.source_name(),
        device_state=device_state.value if device_state else None,
        filter_type=str(settings.filter_type) if settings else None,
        subscribers=service_manager.broadcaster.subscriber_count,
        readings_published=processor.readings_published if processor else 0,
        decode_errors=service_manager.decode_errors(),
    )
