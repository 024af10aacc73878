from fastapi import APIRouter

from snowgauge.routers import reading, status

router = APIRouter()

# include sub-routers
router.include_router(reading.router)
router.include_router(status.router)
