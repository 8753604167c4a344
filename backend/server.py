from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

ROOT_DIR = Path(__file__).parent

# Load .env only if exists (development fallback)
env_path = ROOT_DIR / ".env"
if env_path.exists():
    load_dotenv(env_path)

from wheels import config  # noqa: E402
from wheels.db import close_mongo, connect_mongo  # noqa: E402
from wheels.exception_handlers import register_exception_handlers  # noqa: E402
from wheels.indexes.wheels_indexes import ensure_wheels_indexes  # noqa: E402
from wheels.middleware.correlation_id import CorrelationIdMiddleware  # noqa: E402
from wheels.middleware.structured_logging_middleware import StructuredLoggingMiddleware  # noqa: E402
from wheels.routers.admin import router as admin_router  # noqa: E402
from wheels.routers.driver import router as driver_router  # noqa: E402
from wheels.routers.health import router as health_router  # noqa: E402
from wheels.routers.passenger_bookings import router as passenger_bookings_router  # noqa: E402
from wheels.routers.passenger_payments import router as passenger_payments_router  # noqa: E402
from wheels.routers.payment_webhooks import router as payment_webhooks_router  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("wheels")

app = FastAPI(title=config.APP_NAME, version=config.APP_VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=config.cors_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(StructuredLoggingMiddleware)
# Added last so it runs first and every log line can see the correlation id
app.add_middleware(CorrelationIdMiddleware)

register_exception_handlers(app)

app.include_router(health_router)
app.include_router(passenger_payments_router)
app.include_router(payment_webhooks_router)
app.include_router(passenger_bookings_router)
app.include_router(driver_router)
app.include_router(admin_router)


@app.on_event("startup")
async def _startup() -> None:
    db = await connect_mongo()
    if config.ENSURE_INDEXES:
        await ensure_wheels_indexes(db)
    logger.info("Startup complete")


@app.on_event("shutdown")
async def _shutdown() -> None:
    await close_mongo()
    logger.info("Shutdown complete")
