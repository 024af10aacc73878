from fastapi import FastAPI
from contextlib import asynccontextmanager
import logging

from snowgauge.routers.api import router as api_router
from snowgauge.schemas import AppHealthOK
from snowgauge.core.config_loader import load_settings
from snowgauge.core.service_manager import service_manager

logger = logging.getLogger(__name__)

APP_NAME = "SnowGauge"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the acquisition pipeline with the server and stop it in order on shutdown."""
    settings = getattr(app.state, "settings", None) or load_settings()
    settings.describe()
    await service_manager.start_services(settings)
    try:
        yield
    finally:
        await service_manager.stop_services()


app = FastAPI(title=APP_NAME, lifespan=lifespan)


@app.get("/", tags=["meta"])
async def read_root() -> dict[str, str]:
    return {"message": APP_NAME}


@app.get("/health", tags=["meta"], response_model=AppHealthOK)
async def healthcheck() -> AppHealthOK:
    return AppHealthOK(status="ok", app=APP_NAME)


# mount API router under /api
app.include_router(api_router, prefix="/api")
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
