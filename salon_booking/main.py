from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from salon_booking.api.v1.api import api_router
from salon_booking.core.config import settings
from salon_booking.core.database import init_db
from salon_booking.core.logging import configure_logging
from salon_booking.core.redis import redis_client

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("Application starting up", environment=settings.ENVIRONMENT)
    await init_db()
    if settings.BOOKING_LOCK_BACKEND == "redis":
        await redis_client.init_redis()

    yield

    if settings.BOOKING_LOCK_BACKEND == "redis":
        await redis_client.close()
    logger.info("Application shutting down")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/health")
async def health_check():
    return {"status": "ok"}
