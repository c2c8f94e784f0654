from fastapi import FastAPI
from contextlib import asynccontextmanager
import logging

from flightprice.api import health, prices
from flightprice.config import get_settings
from flightprice.services.resolver import shutdown_resolver

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting flight price service (env={settings.env}, training_mode={settings.training_mode})")
    yield
    logger.info("Shutting down flight price service")
    try:
        await shutdown_resolver()
    except Exception as e:
        logger.error(f"Shutdown error: {e}")


app = FastAPI(
    title="Flight Price Resolver",
    description="Round-trip flight prices reconciled from scraping, a pricing API and a distance model",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router, tags=["health"])
app.include_router(prices.router, prefix="/prices", tags=["prices"])


@app.get("/ping")
async def ping():
    """Simple ping endpoint for health checks."""
    return {"status": "ok"}
