# app/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.api.v1.api import api_router
from app.core.config import settings
from app.core.errors import register_error_handlers
from app.core.kafka_producer import close_kafka_singleton
from app.core.limiter import limiter
from app.scheduler import shutdown_scheduler, start_scheduler

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Booking service starting up")
    if settings.SCHEDULER_ENABLED:
        start_scheduler()
    yield
    if settings.SCHEDULER_ENABLED:
        shutdown_scheduler()
    close_kafka_singleton()
    logger.info("Booking service shut down")


app = FastAPI(
    title="Coworking Booking Service",
    version="1.0.0",
    description="""
        Pricing, booking and payment confirmation for coworking spaces.

        ## Features

        * **Price rules**: partner-authored conditional pricing per area
        * **Bookings**: quotes, pending bookings with price snapshots, checkout
        * **Confirmation**: capacity-safe confirmation from payment webhooks
        * **Host review**: approve or reject bookings that need a decision

        ## Authentication

        Endpoints require a JWT via the `Authorization: Bearer <token>` header,
        except the payment webhook (signature verified) and internal endpoints
        (`X-Internal-Api-Key`).
        """,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def read_root():
    return {"status": "Booking service is running"}
