"""
Typed readings, per-domain analyses and the assembled environmental report.

Readings are built from the plain payload dicts returned by the source
adapters (see ``utils.open_meteo``) and held in the cache.  Everything here
is frozen; a report is never modified once assembled.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class WeatherReading:
    temperature: float
    precipitation: float
    humidity: float
    wind_speed: float
    pressure: float
    conditions: str
    description: str = "No precipitation data available"
    intensity: str = "none"
    duration: float = 0
    total_expected: float = 0.0
    periods_count: int = 0
    next_24h_precipitation: float = 0.0
    hourly: Tuple[Dict[str, Any], ...] = ()
    daily: Tuple[Dict[str, Any], ...] = ()

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "WeatherReading":
        current = payload["current"]
        analysis = payload.get("analysis") or {}
        forecast = payload.get("forecast") or {}
        daily = tuple(forecast.get("daily") or ())
        return cls(
            temperature=float(current["temperature"]),
            precipitation=float(current["precipitation"]),
            humidity=float(current["humidity"]),
            wind_speed=float(current["wind_speed"]),
            pressure=float(current["pressure"]),
            conditions=str(current.get("conditions", "")),
            description=analysis.get("description", "No precipitation data available"),
            intensity=analysis.get("intensity", "none"),
            duration=analysis.get("duration", 0) or 0,
            total_expected=float(analysis.get("total_expected", 0.0) or 0.0),
            periods_count=int(analysis.get("periods_count", 0) or 0),
            next_24h_precipitation=float(daily[0].get("precipitation", 0.0) or 0.0) if daily else 0.0,
            hourly=tuple(forecast.get("hourly") or ()),
            daily=daily,
        )


@dataclass(frozen=True)
class RiverReading:
    current: float
    percentile: float
    average: float
    median: float
    min: float
    max: float
    status: str = "normal"
    description: str = "Normal range"
    data_points: int = 0

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "RiverReading":
        stats = payload["statistics"]
        history = payload.get("historical_data") or {}
        return cls(
            current=float(payload["current"]),
            percentile=float(stats["percentile"]),
            average=float(stats["average"]),
            median=float(stats["median"]),
            min=float(stats["min"]),
            max=float(stats["max"]),
            status=stats.get("status", "normal"),
            description=stats.get("description", "Normal range"),
            data_points=int(history.get("data_points", 0) or 0),
        )


@dataclass(frozen=True)
class ElevationReading:
    meters: float
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ElevationReading":
        return cls(
            meters=float(payload.get("elevation") or 0),
            latitude=payload.get("latitude"),
            longitude=payload.get("longitude"),
        )


@dataclass(frozen=True)
class WeatherAnalysis:
    primary_description: str
    severity_level: str
    severity_description: str
    contributing_factors: Tuple[str, ...]
    score: float
    precipitation_band: str = "NONE"
    current_conditions: Dict[str, str] = field(default_factory=dict)
    forecast: Dict[str, Any] = field(default_factory=dict)
    rain_patterns: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RiverAnalysis:
    primary_description: str
    band: str
    visual_indicator: str
    warning_level: str
    flood_risk_contribution: str
    trend_direction: str
    trend_description: str
    risk_factors: Tuple[str, ...]
    score: float
    current_status: Dict[str, str] = field(default_factory=dict)
    historical_context: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GeographyAnalysis:
    primary_description: str
    elevation_risk: str
    flood_risk_level: str
    elevation_meters: float
    elevation_feet: int
    elevation_category: str
    mitigating_factors: Tuple[str, ...]
    amplifying_factors: Tuple[str, ...]
    score: float
    location_characteristics: Tuple[str, ...] = ()
    drainage: Dict[str, str] = field(default_factory=dict)
    regional_context: str = ""


@dataclass(frozen=True)
class CompositeRisk:
    score: float
    risk_level: str
    confidence: str
    summary: str
    components: Dict[str, float]
    key_factors: Tuple[str, ...] = ()


@dataclass(frozen=True)
class EnvironmentalReport:
    weather_conditions: WeatherAnalysis
    river_status: RiverAnalysis
    geographical_factors: GeographyAnalysis
    overall_risk: CompositeRisk
    latitude: float
    longitude: float
    timestamp: str
    is_mock: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["location"] = {"latitude": data.pop("latitude"), "longitude": data.pop("longitude")}
        return data
