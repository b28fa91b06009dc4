"""
Offline location lookups for Malaysian coordinates.

Region (state) detection is a first-match scan over fixed bounding boxes and
nearest-city search is a planar distance scan over a short list of major
cities.  Both tables are small, so there is no spatial index.  Distances are
in degrees, not kilometres.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional, Tuple

from .cache import TTLCache, region_key
from .errors import InvalidInput

logger = logging.getLogger(__name__)

DEFAULT_REGION = "Selangor"

# name -> (lat_min, lat_max, lon_min, lon_max); order matters, first match wins
REGION_BOUNDS: Dict[str, Tuple[float, float, float, float]] = {
    "Selangor": (2.6, 3.9, 100.8, 102.2),
    "Kuala Lumpur": (3.0, 3.3, 101.5, 101.8),
    "Putrajaya": (2.85, 3.0, 101.6, 101.8),
    "Johor": (1.2, 2.8, 102.3, 104.8),
    "Kedah": (5.0, 6.8, 99.8, 101.2),
    "Kelantan": (4.5, 6.3, 101.3, 102.8),
    "Melaka": (2.0, 2.4, 102.0, 102.6),
    "Negeri Sembilan": (2.3, 3.0, 101.4, 102.8),
    "Pahang": (2.8, 4.8, 101.4, 103.8),
    "Penang": (5.2, 5.6, 100.1, 100.6),
    "Perak": (3.7, 5.7, 100.4, 102.2),
    "Perlis": (6.3, 6.8, 100.0, 100.6),
    "Sabah": (4.0, 7.6, 115.0, 119.6),
    "Sarawak": (0.8, 5.2, 109.3, 115.7),
    "Terengganu": (4.0, 5.9, 102.4, 103.9),
    "Labuan": (5.2, 5.4, 115.1, 115.3),
}

SERVICE_AREA = (0.8, 7.6, 99.5, 119.6)

# name -> (lat, lon, region)
KNOWN_PLACES: Dict[str, Tuple[float, float, str]] = {
    "Kuala Lumpur": (3.1390, 101.6869, "Kuala Lumpur"),
    "Puchong": (3.0738, 101.5183, "Selangor"),
    "Shah Alam": (3.0733, 101.5185, "Selangor"),
    "Petaling Jaya": (3.1073, 101.6421, "Selangor"),
    "Johor Bahru": (1.4927, 103.7414, "Johor"),
    "George Town": (5.4164, 100.3327, "Penang"),
    "Ipoh": (4.5975, 101.0901, "Perak"),
    "Kota Kinabalu": (5.9804, 116.0735, "Sabah"),
    "Kuching": (1.5533, 110.3592, "Sarawak"),
    "Malacca City": (2.2055, 102.2501, "Melaka"),
    "Alor Setar": (6.1248, 100.3678, "Kedah"),
    "Kuantan": (3.8077, 103.3260, "Pahang"),
}

URBAN_CENTRES: List[Tuple[float, float]] = [
    (3.139, 101.687),   # Kuala Lumpur
    (5.414, 100.329),   # Georgetown
    (1.464, 103.761),   # Johor Bahru
    (5.979, 116.075),   # Kota Kinabalu
]


def validate_coordinates(lat: float, lon: float) -> None:
    """Raise ``InvalidInput`` unless both values are finite and on the globe."""
    for name, value in (("lat", lat), ("lon", lon)):
        if not isinstance(value, (int, float)) or isinstance(value, bool) or not math.isfinite(value):
            raise InvalidInput(f"{name} must be a finite number, got {value!r}")
    if not -90 <= lat <= 90:
        raise InvalidInput(f"lat must be within [-90, 90], got {lat}")
    if not -180 <= lon <= 180:
        raise InvalidInput(f"lon must be within [-180, 180], got {lon}")


def _in_box(lat: float, lon: float, box: Tuple[float, float, float, float]) -> bool:
    lat_min, lat_max, lon_min, lon_max = box
    return lat_min <= lat <= lat_max and lon_min <= lon <= lon_max


def planar_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    return math.sqrt((lat2 - lat1) ** 2 + (lon2 - lon1) ** 2)


def is_near_coastal(lat: float, lon: float) -> bool:
    """Coarse coastal strips: west/east Peninsula, Sabah and Sarawak coasts."""
    return (
        (lat <= 6.5 and lon <= 100.5)
        or (lat <= 4.5 and lon >= 103.5)
        or (lat >= 4.5 and 115 <= lon <= 118)
        or (lat <= 3 and 109 <= lon <= 115)
    )


def is_near_urban_area(lat: float, lon: float) -> bool:
    return any(abs(lat - u_lat) < 0.5 and abs(lon - u_lon) < 0.5 for u_lat, u_lon in URBAN_CENTRES)


def regional_context(lat: float, lon: float) -> str:
    if lat >= 6:
        return "Northern Malaysia - monsoon-dominated climate with seasonal flooding patterns"
    if lat >= 4:
        return "Central Malaysia - equatorial climate with year-round precipitation"
    if lat >= 2 and lon <= 104:
        return "Southern Peninsula - influenced by both monsoons and maritime weather"
    return "East Malaysia - tropical climate with river basin flooding patterns"


def location_insights(lat: float, lon: float) -> List[str]:
    insights = []
    if lat >= 5.5:
        insights.append("Northern Peninsula location with monsoon influence")
    elif lat >= 2.5:
        insights.append("Central Peninsula urban corridor with modified drainage")
    elif lat >= 1:
        insights.append("Southern Peninsula location with tidal influences")
    else:
        insights.append("East Malaysia location with tropical river systems")

    if lon <= 103 and lat >= 1:
        insights.append("Peninsular Malaysia with established drainage infrastructure")
    else:
        insights.append("East Malaysia with natural river basin drainage")
    return insights


class LocationClassifier:
    """
    Region, nearest-city and service-area lookups.

    ``region_for`` results are memoized in ``region_cache`` (24 hours, keyed
    by coordinates rounded to four decimals) when one is given.  Every lookup
    raises ``InvalidInput`` for non-finite or off-globe coordinates.
    """

    def __init__(self, region_cache: Optional[TTLCache] = None):
        self.region_cache = region_cache

    def region_for(self, lat: float, lon: float) -> str:
        validate_coordinates(lat, lon)
        key = region_key(lat, lon)
        if self.region_cache is not None:
            cached = self.region_cache.get(key)
            if cached is not None:
                return cached

        region = DEFAULT_REGION
        for name, box in REGION_BOUNDS.items():
            if _in_box(lat, lon, box):
                region = name
                break
        else:
            logger.debug("No region box contains (%s, %s); defaulting to %s", lat, lon, DEFAULT_REGION)

        if self.region_cache is not None:
            self.region_cache.put(key, region)
        return region

    def nearest_known_place(self, lat: float, lon: float) -> Dict[str, Any]:
        validate_coordinates(lat, lon)
        nearest: Optional[Dict[str, Any]] = None
        min_distance = math.inf
        for name, (p_lat, p_lon, region) in KNOWN_PLACES.items():
            d = planar_distance(lat, lon, p_lat, p_lon)
            if d < min_distance:
                min_distance = d
                nearest = {"name": name, "region": region, "latitude": p_lat, "longitude": p_lon}
        return {**nearest, "distance": min_distance}

    def is_within_service_area(self, lat: float, lon: float) -> bool:
        validate_coordinates(lat, lon)
        if not _in_box(lat, lon, SERVICE_AREA):
            return False
        return any(_in_box(lat, lon, box) for box in REGION_BOUNDS.values())
