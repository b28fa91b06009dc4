"""
FastAPI app with:
- Router include
- Reading cache (memory + Redis) and report aggregator created on startup,
  closed on shutdown
- Optional startup prewarm of reports for the known Malaysian cities
"""

from __future__ import annotations
import os
import asyncio
from fastapi import FastAPI
import logging

from dotenv import load_dotenv

load_dotenv()

from api.cors import add_cors
from api.endpoints import router
from utils.aggregator import FloodReportAggregator
from utils.cache import MultiTierCache
from utils.kv import RedisStore
from utils.locations import KNOWN_PLACES, LocationClassifier

# Configure logging at the application level
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Controls
ENABLE_DURABLE_CACHE = os.getenv("ENABLE_DURABLE_CACHE", "1") == "1"
PREWARM_KNOWN_PLACES = os.getenv("PREWARM_KNOWN_PLACES", "0") == "1"
PREWARM_CONCURRENCY = int(os.getenv("PREWARM_CONCURRENCY", "3"))
PREWARM_SPACING_S = float(os.getenv("PREWARM_SPACING_S", "1.0"))
PREWARM_PROBABILITY = float(os.getenv("PREWARM_PROBABILITY", "0.5"))
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

app = FastAPI(title="Flood Risk Report API")
add_cors(app, origins=CORS_ORIGINS)
app.include_router(router)


async def _prewarm_known_places(aggregator: FloodReportAggregator):
    sem = asyncio.Semaphore(PREWARM_CONCURRENCY)

    async def one(name, lat, lon):
        async with sem:
            report = await asyncio.to_thread(aggregator.generate_report, lat, lon, PREWARM_PROBABILITY)
            if report.is_mock:
                logger.warning("[prewarm %s] upstream unavailable, nothing cached", name)
            else:
                logger.info("[prewarm %s] %s (%.1f)", name, report.overall_risk.risk_level, report.overall_risk.score)
        await asyncio.sleep(PREWARM_SPACING_S)

    await asyncio.gather(*(
        asyncio.create_task(one(name, lat, lon)) for name, (lat, lon, _) in KNOWN_PLACES.items()
    ))


@app.on_event("startup")
async def startup():
    store = RedisStore() if ENABLE_DURABLE_CACHE else None
    cache = MultiTierCache(store=store)
    app.state.store = store
    app.state.cache = cache
    app.state.classifier = LocationClassifier(region_cache=cache.regions)
    app.state.aggregator = FloodReportAggregator(cache)
    logger.info("Flood report service ready (durable cache %s)", "on" if store else "off")
    if PREWARM_KNOWN_PLACES:
        asyncio.create_task(_prewarm_known_places(app.state.aggregator))


@app.on_event("shutdown")
async def shutdown():
    app.state.aggregator.close()
    if app.state.store is not None:
        app.state.store.close()
