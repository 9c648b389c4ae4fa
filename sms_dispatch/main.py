import asyncio
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from . import __version__
from .application.services import CampaignWorker
from .config import settings
from .infrastructure.adapters import InMemoryCampaignQueue, KinesisCampaignConsumer
from .infrastructure.logging import configure_logging
from .presentation.api.dependencies import get_campaign_queue, get_dispatch_service
from .presentation.api.v1 import gateway, health, sms
from .presentation.middleware import CorrelationIdMiddleware

configure_logging(settings.service_name, settings.log_level, json_output=settings.log_json)

logger = structlog.get_logger()


def create_campaign_runner():
    """Pick the campaign consumer matching the configured queue backend."""
    service = get_dispatch_service()
    queue = get_campaign_queue()
    if isinstance(queue, InMemoryCampaignQueue):
        logger.info("Using in-process campaign queue")
        return CampaignWorker(service, next_campaign=queue.get)

    logger.info("Using Kinesis campaign queue", stream=settings.kinesis_stream_name)
    return KinesisCampaignConsumer(worker=CampaignWorker(service), config=settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting application", service=settings.service_name)

    runner = create_campaign_runner()
    task = asyncio.create_task(runner.start())

    yield

    await runner.stop()
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    await get_dispatch_service().drain()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="SMS Dispatch API",
    description="Send SMS through cloud carriers or a hardware SIM gateway",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(CorrelationIdMiddleware)

app.include_router(health.router)
app.include_router(sms.router, prefix="/api/v1")
app.include_router(gateway.router, prefix="/api/v1")


@app.get("/")
def root() -> dict:
    return {
        "service": settings.service_name,
        "version": __version__,
        "docs": "/docs",
    }
