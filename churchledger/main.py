"""FastAPI application entry point."""
import logging
import logging.config
from contextlib import asynccontextmanager

from fastapi import FastAPI

from churchledger.api.routes import router
from churchledger.database import init_db
from churchledger.config import settings
from churchledger.middleware.rate_limit import RateLimitMiddleware

logging.config.dictConfig({
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            "datefmt": "%Y-%m-%dT%H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
        },
    },
    "root": {
        "level": "INFO",
        "handlers": ["console"],
    },
})

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Church ledger sync starting up, initializing database tables")
    try:
        init_db()
        logger.info("Database ready")
    except Exception as e:
        # Server must still bind so /health answers
        logger.warning("Database init failed (server will start anyway): %s", e)
    yield
    logger.info("Church ledger sync shutting down")


app = FastAPI(
    title="Church Ledger Sync",
    description="Mirror completed donations into QuickBooks Online or Xero.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    RateLimitMiddleware,
    session_cookie_name=settings.session_cookie_name,
    requests_per_minute_ip=settings.rate_limit_requests_per_minute_ip,
    requests_per_minute_user=settings.rate_limit_requests_per_minute_user,
    sync_requests_per_minute=settings.rate_limit_sync_requests_per_minute,
    exempt_paths=["/health"],
)

app.include_router(router, prefix="/api", tags=["api"])


@app.get("/health")
def health():
    return {"status": "ok"}
