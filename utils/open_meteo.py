"""
Source adapters for the Open-Meteo weather, flood and elevation APIs.

Each ``fetch_*`` function returns a plain JSON-serializable payload dict so
it can be stored in the reading cache unchanged.  Any transport error,
non-200 status or unparseable body is raised as ``SourceUnavailable``; these
adapters never substitute made-up values.  Every request is bounded by
``OPEN_METEO_TIMEOUT_S``.

Open-Meteo is free for non-commercial use and needs no API key.
"""

from __future__ import annotations

import datetime as dt
import os
from typing import Any, Dict, List, Optional

import requests

from .errors import SourceUnavailable
from .thresholds import SIGNIFICANT_RAIN_MM_H

FORECAST_URL = os.getenv("OPEN_METEO_FORECAST_URL", "https://api.open-meteo.com/v1/forecast")
FLOOD_URL = os.getenv("OPEN_METEO_FLOOD_URL", "https://flood-api.open-meteo.com/v1/flood")
ELEVATION_URL = os.getenv("OPEN_METEO_ELEVATION_URL", "https://api.open-meteo.com/v1/elevation")
OPEN_METEO_TIMEOUT_S = float(os.getenv("OPEN_METEO_TIMEOUT_S", "10"))

HOURLY_FIELDS = "temperature_2m,precipitation,relative_humidity_2m,wind_speed_10m,pressure_msl"
DAILY_FIELDS = "temperature_2m_max,temperature_2m_min,precipitation_sum,precipitation_hours"


def _get_json(source: str, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
    try:
        resp = requests.get(url, params=params, timeout=OPEN_METEO_TIMEOUT_S)
    except requests.RequestException as exc:
        raise SourceUnavailable(source, f"request failed: {exc}") from exc
    if resp.status_code != 200:
        raise SourceUnavailable(source, f"returned {resp.status_code}: {resp.text[:200]}")
    try:
        data = resp.json()
    except ValueError as exc:
        raise SourceUnavailable(source, f"failed to parse response: {exc}") from exc
    if not isinstance(data, dict):
        raise SourceUnavailable(source, "unexpected response shape")
    return data


def _at(values: Optional[List[Any]], i: int, default: float) -> float:
    # Open-Meteo pads missing hours with null
    if not values or i >= len(values) or values[i] is None:
        return default
    return values[i]


# ---- Weather ---------------------------------------------------------------

def find_rain_periods(precipitation: List[float]) -> List[Dict[str, int]]:
    """
    Split an hourly precipitation series into continuous runs of hours above
    ``SIGNIFICANT_RAIN_MM_H``.
    """
    periods: List[Dict[str, int]] = []
    current: Optional[Dict[str, int]] = None
    for hour, p in enumerate(precipitation):
        if p is not None and p > SIGNIFICANT_RAIN_MM_H:
            if current is None:
                current = {"start": hour, "end": hour, "duration": 1}
            else:
                current["end"] = hour
                current["duration"] = hour - current["start"] + 1
        elif current is not None:
            periods.append(current)
            current = None
    if current is not None:
        periods.append(current)
    return periods


def rainfall_intensity(mm_h: float) -> str:
    if mm_h > 50:
        return "extreme"
    if mm_h > 20:
        return "very_heavy"
    if mm_h > 10:
        return "heavy"
    if mm_h > 2.5:
        return "moderate"
    if mm_h > 0.5:
        return "light"
    return "none"


def weather_conditions(temp: float, precip: float, humidity: float) -> str:
    if precip > 20:
        return "Heavy rain"
    if precip > 5:
        return "Moderate rain"
    if precip > 1:
        return "Light rain"
    if humidity > 85 and temp > 30:
        return "Hot and humid"
    if humidity > 90:
        return "Very humid"
    if temp > 32:
        return "Hot"
    if temp < 20:
        return "Cool"
    return "Clear"


def analyze_precipitation(precipitation: List[float]) -> Dict[str, Any]:
    """Describe the longest continuous rain period in an hourly series."""
    values = [p for p in precipitation if p is not None]
    if not values:
        return {
            "description": "No precipitation data available",
            "duration": 0,
            "intensity": "none",
            "max_intensity": 0.0,
            "periods_count": 0,
            "total_expected": 0.0,
        }

    periods = find_rain_periods(values)
    duration = max((p["duration"] for p in periods), default=0)
    if not any(p > SIGNIFICANT_RAIN_MM_H for p in values):
        description = "No significant rainfall expected"
    elif any(p > 10 for p in values):
        description = f"Heavy rainfall expected to continue for {duration} hours"
    elif duration > 6:
        description = f"Moderate rainfall expected for {duration} hours"
    elif duration > 2:
        description = f"Light to moderate rainfall for {duration} hours"
    else:
        description = "Brief periods of rainfall expected"

    max_intensity = max(values)
    return {
        "description": description,
        "duration": duration,
        "intensity": rainfall_intensity(max_intensity),
        "max_intensity": max_intensity,
        "periods_count": len(periods),
        "total_expected": sum(values),
    }


def process_weather(data: Dict[str, Any], lat: float, lon: float, now: Optional[dt.datetime] = None) -> Dict[str, Any]:
    hourly = data.get("hourly") or {}
    daily = data.get("daily") or {}
    hour = (now or dt.datetime.now()).hour

    temp = _at(hourly.get("temperature_2m"), hour, 28)
    precip = _at(hourly.get("precipitation"), hour, 0)
    humidity = _at(hourly.get("relative_humidity_2m"), hour, 75)
    wind = _at(hourly.get("wind_speed_10m"), hour, 10)
    pressure = _at(hourly.get("pressure_msl"), hour, 1010)

    times = hourly.get("time") or []
    hours = [
        {
            "time": times[i],
            "temperature": _at(hourly.get("temperature_2m"), i, 28),
            "precipitation": _at(hourly.get("precipitation"), i, 0),
            "humidity": _at(hourly.get("relative_humidity_2m"), i, 75),
            "wind_speed": _at(hourly.get("wind_speed_10m"), i, 10),
            "pressure": _at(hourly.get("pressure_msl"), i, 1010),
        }
        for i in range(min(48, len(times)))
    ]
    days_t = daily.get("time") or []
    days = [
        {
            "date": days_t[i],
            "max_temp": _at(daily.get("temperature_2m_max"), i, 32),
            "min_temp": _at(daily.get("temperature_2m_min"), i, 24),
            "precipitation": _at(daily.get("precipitation_sum"), i, 0),
            "precipitation_hours": _at(daily.get("precipitation_hours"), i, 0),
        }
        for i in range(min(3, len(days_t)))
    ]

    return {
        "current": {
            "temperature": temp,
            "precipitation": precip,
            "humidity": humidity,
            "wind_speed": wind,
            "pressure": pressure,
            "conditions": weather_conditions(temp, precip, humidity),
        },
        "forecast": {"hourly": hours, "daily": days},
        "analysis": analyze_precipitation(hourly.get("precipitation") or []),
        "location": {"latitude": lat, "longitude": lon},
        "source": "Open Meteo Weather API",
    }


def fetch_weather(lat: float, lon: float, forecast_days: int = 3) -> Dict[str, Any]:
    """Current conditions, 48h hourly / 3 day daily forecast and rain analysis."""
    data = _get_json("weather", FORECAST_URL, {
        "latitude": lat,
        "longitude": lon,
        "hourly": HOURLY_FIELDS,
        "daily": DAILY_FIELDS,
        "forecast_days": forecast_days,
    })
    return process_weather(data, lat, lon)


# ---- River discharge -------------------------------------------------------

def percentile_rank(value: float, sorted_values: List[float]) -> float:
    """Percentile of ``value`` counting ties as half below."""
    if not sorted_values:
        return 0.0
    below = sum(1 for v in sorted_values if v < value)
    equal = sum(1 for v in sorted_values if v == value)
    return (below + 0.5 * equal) / len(sorted_values) * 100


def _discharge_status(percentile: float) -> Dict[str, str]:
    top = f"{100 - percentile:.0f}"
    if percentile >= 95:
        return {"status": "extreme", "description": f"Extremely high - top {top}% of the year"}
    if percentile >= 90:
        return {"status": "very_high", "description": f"Very high - top {top}% of the year"}
    if percentile >= 75:
        return {"status": "high", "description": f"High - top {top}% of the year"}
    if percentile >= 50:
        return {"status": "above_normal", "description": f"Above normal - top {top}% of the year"}
    if percentile >= 25:
        return {"status": "normal", "description": "Normal range"}
    return {"status": "low", "description": "Below normal"}


def process_river_discharge(data: Dict[str, Any], lat: float, lon: float) -> Dict[str, Any]:
    daily = data.get("daily") or {}
    values = [v for v in (daily.get("river_discharge") or []) if v is not None]
    if not values:
        raise SourceUnavailable("river", "no discharge values for this location")

    sorted_values = sorted(values)
    current = values[-1]
    percentile = percentile_rank(current, sorted_values)

    return {
        "current": round(current, 2),
        "statistics": {
            "average": round(sum(values) / len(values), 2),
            "median": round(sorted_values[len(sorted_values) // 2], 2),
            "min": round(sorted_values[0], 2),
            "max": round(sorted_values[-1], 2),
            "percentile": round(percentile, 1),
            **_discharge_status(percentile),
        },
        "historical_data": {
            "dates": (daily.get("time") or [])[: len(values)],
            "data_points": len(values),
        },
        "location": {"latitude": lat, "longitude": lon},
        "unit": "m³/s",
        "source": "Open Meteo Flood API",
    }


def fetch_river_history(lat: float, lon: float, months: int = 12) -> Dict[str, Any]:
    """Daily river discharge for the last ``months`` months with summary statistics."""
    end = dt.date.today()
    start = end - dt.timedelta(days=30 * months)
    data = _get_json("river", FLOOD_URL, {
        "latitude": lat,
        "longitude": lon,
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "daily": "river_discharge",
    })
    return process_river_discharge(data, lat, lon)


# ---- Elevation -------------------------------------------------------------

def fetch_elevation(lat: float, lon: float) -> Dict[str, Any]:
    data = _get_json("elevation", ELEVATION_URL, {"latitude": lat, "longitude": lon})
    elevation = data.get("elevation")
    if not isinstance(elevation, list) or not elevation or elevation[0] is None:
        raise SourceUnavailable("elevation", "no elevation in response")
    return {
        "elevation": float(elevation[0]),
        "latitude": lat,
        "longitude": lon,
        "source": "Open Meteo Elevation API",
    }
