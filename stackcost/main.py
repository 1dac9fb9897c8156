"""
Main FastAPI application bootstrap.
Configures logging and middleware and includes routers.
"""
import logging

from fastapi import FastAPI

from stackcost.core.config import config
from stackcost.core.logging_setup import configure_logging
from stackcost.api.estimate import router as estimate_router
from stackcost.middleware.request_size_limiter import RequestSizeLimiterMiddleware


configure_logging()
logger = logging.getLogger(__name__)

# Validate configuration on startup
try:
    config.validate()
except ValueError as error:
    raise RuntimeError(f"Configuration error: {error}") from error

logger.info(
    "Pricing source=%s, cache=%s (ttl %ss)",
    config.PRICING_SOURCE,
    config.PRICING_CACHE_DIR,
    config.PRICING_CACHE_TTL_SECONDS
)


app = FastAPI(
    title="Stack Cost Estimation",
    description="Monthly AWS cost estimates for CloudFormation templates",
)

app.add_middleware(RequestSizeLimiterMiddleware)

app.include_router(estimate_router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok", "pricing_source": config.PRICING_SOURCE}
