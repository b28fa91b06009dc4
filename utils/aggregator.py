"""
Environmental flood report assembly.

``FloodReportAggregator.generate_report`` fetches weather, river discharge
and elevation readings concurrently (each through the reading cache), scores
each domain, blends the scores into a composite verdict and caches the
finished report for a few minutes.

If any of the three fetches fails, or anything goes wrong while scoring, the
whole aggregation is abandoned and a synthetic report flagged ``is_mock`` is
returned instead.  Real and synthetic domains are never mixed.  Only invalid
coordinates raise to the caller.
"""

from __future__ import annotations

import copy
import datetime as dt
import logging
import math
import os
import random
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from . import open_meteo
from .cache import CacheTier, MultiTierCache, TTLCache
from .locations import validate_coordinates
from .models import ElevationReading, EnvironmentalReport, RiverReading, WeatherReading
from .scoring import (
    analyze_geography,
    analyze_river,
    analyze_weather,
    composite_risk,
    key_risk_factors,
)

logger = logging.getLogger(__name__)

REPORT_CACHE_TTL_SECONDS = float(os.getenv("REPORT_CACHE_TTL_SECONDS", str(5 * 60)))
FETCH_TIMEOUT_S = float(os.getenv("FETCH_TIMEOUT_S", "20"))
FETCH_WORKERS = int(os.getenv("FETCH_WORKERS", "12"))

Fetcher = Callable[[float, float], Dict[str, Any]]

# Tier each reading is looked up under; elevation barely changes
READING_TIERS = {
    "weather": CacheTier.FRESH,
    "river": CacheTier.VALID,
    "elevation": CacheTier.STALE_ACCEPTABLE,
}


DEFAULT_FLOOD_PROBABILITY = 0.5


def normalize_probability(flood_probability: float) -> float:
    """Clamp into [0, 1]; NaN and non-numbers fall back to the default."""
    if isinstance(flood_probability, bool) or not isinstance(flood_probability, (int, float)) \
            or math.isnan(flood_probability):
        logger.debug("Unusable flood probability %r, using %s", flood_probability, DEFAULT_FLOOD_PROBABILITY)
        return DEFAULT_FLOOD_PROBABILITY
    return min(1.0, max(0.0, float(flood_probability)))


def reading_key(kind: str, lat: float, lon: float) -> str:
    return f"{kind}_{lat}_{lon}"


class FloodReportAggregator:
    """
    Parameters
    ----------
    cache : MultiTierCache
        Reading cache shared by every request; its clock also drives the
        report cache and report timestamps.
    fetch_weather, fetch_river, fetch_elevation : callable, optional
        Source adapters taking ``(lat, lon)``.  Default to Open-Meteo.
    rng : random.Random, optional
        Source of jitter for synthetic reports.
    """

    def __init__(
        self,
        cache: MultiTierCache,
        fetch_weather: Fetcher = open_meteo.fetch_weather,
        fetch_river: Fetcher = open_meteo.fetch_river_history,
        fetch_elevation: Fetcher = open_meteo.fetch_elevation,
        report_ttl: float = REPORT_CACHE_TTL_SECONDS,
        fetch_timeout: float = FETCH_TIMEOUT_S,
        max_workers: int = FETCH_WORKERS,
        rng: Optional[random.Random] = None,
    ):
        self.cache = cache
        self.clock = cache.clock
        self.fetchers: Dict[str, Fetcher] = {
            "weather": fetch_weather,
            "river": fetch_river,
            "elevation": fetch_elevation,
        }
        self.reports = TTLCache(report_ttl, clock=self.clock)
        self.fetch_timeout = fetch_timeout
        self.rng = rng or random.Random()
        # Long-lived pool: a fetch left running by an abandoned request still
        # completes and fills the cache.
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="flood-fetch")

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    def _timestamp(self) -> str:
        return dt.datetime.fromtimestamp(self.clock(), tz=dt.timezone.utc).isoformat()

    def _cached_fetch(self, kind: str, lat: float, lon: float) -> Dict[str, Any]:
        key = reading_key(kind, lat, lon)
        payload = self.cache.get(key, READING_TIERS[kind])
        if payload is not None:
            return payload
        t0 = time.monotonic()
        payload = self.fetchers[kind](lat, lon)
        logger.debug("Fetched %s for (%s, %s) in %.2fs", kind, lat, lon, time.monotonic() - t0)
        self.cache.put(key, payload)
        return payload

    def fetch_readings(self, lat: float, lon: float) -> Dict[str, Dict[str, Any]]:
        """
        Fan out the three fetches and wait for all of them.  The first failure
        (or the shared deadline passing) raises; remaining fetches keep running.
        """
        futures = {
            kind: self._executor.submit(self._cached_fetch, kind, lat, lon)
            for kind in self.fetchers
        }
        deadline = time.monotonic() + self.fetch_timeout
        return {
            kind: fut.result(timeout=max(0.0, deadline - time.monotonic()))
            for kind, fut in futures.items()
        }

    def _build_report(self, lat: float, lon: float, flood_probability: float,
                      weather: WeatherReading, river: RiverReading, elevation: ElevationReading,
                      is_mock: bool = False) -> EnvironmentalReport:
        w = analyze_weather(weather, flood_probability)
        r = analyze_river(river, flood_probability)
        g = analyze_geography(elevation, flood_probability, lat, lon)
        overall = composite_risk(w.score, r.score, g.score, key_risk_factors(weather, river, elevation))
        return EnvironmentalReport(
            weather_conditions=w,
            river_status=r,
            geographical_factors=g,
            overall_risk=overall,
            latitude=lat,
            longitude=lon,
            timestamp=self._timestamp(),
            is_mock=is_mock,
        )

    def sweep(self) -> int:
        """Drop expired reports; returns how many were removed."""
        return self.reports.sweep()

    def generate_report(self, lat: float, lon: float,
                        flood_probability: float = DEFAULT_FLOOD_PROBABILITY) -> EnvironmentalReport:
        """
        Build (or serve from cache) the environmental flood report for a point.

        Raises ``InvalidInput`` for non-finite or off-globe coordinates; the
        probability is clamped into [0, 1].  Every other failure yields a
        synthetic report with ``is_mock=True``.  Callers always get their own
        copy, never the cached instance.
        """
        validate_coordinates(lat, lon)
        flood_probability = normalize_probability(flood_probability)

        report_key = (lat, lon, round(flood_probability * 100))
        cached = self.reports.get(report_key)
        if cached is not None:
            logger.debug("Report cache hit for %s", report_key)
            return copy.deepcopy(cached)

        try:
            payloads = self.fetch_readings(lat, lon)
            report = self._build_report(
                lat, lon, flood_probability,
                WeatherReading.from_payload(payloads["weather"]),
                RiverReading.from_payload(payloads["river"]),
                ElevationReading.from_payload(payloads["elevation"]),
            )
        except Exception as e:
            logger.warning("Environmental analysis failed for (%s, %s); serving synthetic report: %r", lat, lon, e)
            return self.synthetic_report(lat, lon, flood_probability)

        self.reports.put(report_key, report)
        return copy.deepcopy(report)

    def synthetic_report(self, lat: float, lon: float, flood_probability: float) -> EnvironmentalReport:
        """
        Plausible stand-in report built from a fixed template with a little
        random jitter.  Never cached.
        """
        rng = self.rng
        precipitation = round(5 + rng.random() * 4.5, 1)
        weather = WeatherReading(
            temperature=round(25 + rng.random() * 10, 1),
            precipitation=precipitation,
            humidity=round(86 + rng.random() * 3),
            wind_speed=round(5 + rng.random() * 10, 1),
            pressure=round(1005 + rng.random() * 4, 1),
            conditions="Light rain",
            description="Heavy rainfall expected to continue for 6 hours",
            intensity="moderate",
            duration=6,
            total_expected=round(precipitation * 6, 1),
            periods_count=1,
        )
        river = RiverReading(
            current=185.4,
            percentile=85.2,
            average=150.0,
            median=142.7,
            min=38.5,
            max=412.9,
            status="high",
            description="High - top 15% of the year",
            data_points=360,
        )
        elevation = ElevationReading(meters=float(round(50 + rng.random() * 25)), latitude=lat, longitude=lon)
        return self._build_report(lat, lon, flood_probability, weather, river, elevation, is_mock=True)
