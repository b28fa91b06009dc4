"""
Rule-based flood risk scoring.

Three per-domain analyses (weather, river discharge, terrain) each produce a
qualitative description, a severity label, contributing factors and a 0-100
sub-score.  ``composite_risk`` blends the sub-scores into the overall verdict.

Band comparisons are strict (``>``/``<``) for weather readings and inclusive
lower bounds (``>=``) for river percentiles; elevation bands are ``<`` upper
bounds, so a value sitting exactly on a boundary falls into the band above it.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from .locations import (
    is_near_coastal,
    is_near_urban_area,
    location_insights,
    regional_context,
)
from .models import (
    CompositeRisk,
    ElevationReading,
    GeographyAnalysis,
    RiverAnalysis,
    RiverReading,
    WeatherAnalysis,
    WeatherReading,
)
from .thresholds import COMPONENT_WEIGHTS, PRECIPITATION_THRESHOLDS, precipitation_band


def _clamp(x: float, lo: float = 0.0, hi: float = 100.0) -> float:
    return max(lo, min(hi, x))


# ---- Weather ---------------------------------------------------------------

WEATHER_SEVERITY: List[Tuple[float, str, str]] = [
    (0.8, "critical", "Critical weather conditions with immediate flood threat"),
    (0.6, "severe", "Severe weather conditions increasing flood likelihood"),
    (0.4, "moderate", "Concerning weather patterns requiring monitoring"),
]


def weather_severity(flood_probability: float) -> Tuple[str, str]:
    for threshold, level, description in WEATHER_SEVERITY:
        if flood_probability > threshold:
            return level, description
    return "low", "Current weather conditions pose minimal flood risk"


def weather_factors(w: WeatherReading) -> List[str]:
    factors = []
    if w.precipitation > PRECIPITATION_THRESHOLDS["MODERATE"]:
        factors.append(f"Heavy rainfall currently falling ({w.precipitation:.1f}mm/h)")
    elif w.precipitation > PRECIPITATION_THRESHOLDS["LIGHT"]:
        factors.append(f"Moderate rainfall currently observed ({w.precipitation:.1f}mm/h)")

    if w.humidity > 90:
        factors.append("Extremely high humidity creating favorable conditions for continued rainfall")
    elif w.humidity > 85:
        factors.append("Very high humidity supporting storm development")

    if w.pressure < 1005:
        factors.append("Low atmospheric pressure indicating unstable weather conditions")

    if w.wind_speed > 20:
        factors.append("Strong winds may intensify storm systems")

    if w.next_24h_precipitation > 50:
        factors.append(f"Significant rainfall expected in next 24h ({w.next_24h_precipitation:.1f}mm)")
    return factors


def weather_score(w: WeatherReading) -> float:
    """
    Precipitation band (up to 40) + rain duration band (up to 25) +
    humidity/pressure band (up to 35), capped at 100.
    """
    score = 0
    t = PRECIPITATION_THRESHOLDS
    if w.precipitation > t["EXTREME"]:
        score += 40
    elif w.precipitation > t["HEAVY"]:
        score += 30
    elif w.precipitation > t["MODERATE"]:
        score += 20
    elif w.precipitation > t["LIGHT"]:
        score += 10

    if w.duration > 12:
        score += 25
    elif w.duration > 6:
        score += 18
    elif w.duration > 3:
        score += 12
    elif w.duration > 1:
        score += 6

    if w.humidity > 95 and w.pressure < 1000:
        score += 35
    elif w.humidity > 90 and w.pressure < 1005:
        score += 25
    elif w.humidity > 85:
        score += 15
    elif w.humidity > 80:
        score += 8

    return float(min(score, 100))


def _summarize_hours(hours: Sequence[Dict]) -> Dict[str, str]:
    if not hours:
        return {}
    temps = [h.get("temperature", 0) for h in hours]
    precip = [h.get("precipitation", 0) for h in hours]
    return {
        "average_temp": f"{sum(temps) / len(temps):.1f}°C",
        "total_precipitation": f"{sum(precip):.1f}mm",
        "max_intensity": f"{max(precip):.1f}mm/h",
    }


def analyze_weather(w: WeatherReading, flood_probability: float) -> WeatherAnalysis:
    level, description = weather_severity(flood_probability)
    next_day = w.daily[0] if w.daily else None
    return WeatherAnalysis(
        primary_description=w.description,
        severity_level=level,
        severity_description=description,
        contributing_factors=tuple(weather_factors(w)),
        score=weather_score(w),
        precipitation_band=precipitation_band(w.precipitation),
        current_conditions={
            "temperature": f"{w.temperature:.1f}°C",
            "precipitation": f"{w.precipitation:.1f}mm/h",
            "humidity": f"{w.humidity:.0f}%",
            "wind_speed": f"{w.wind_speed:.1f}km/h",
            "pressure": f"{w.pressure:.1f}hPa",
            "conditions": w.conditions,
        },
        forecast={
            "next_6_hours": _summarize_hours(w.hourly[:6]),
            "next_24_hours": {
                "max_temp": f"{next_day.get('max_temp', 0):.1f}°C",
                "min_temp": f"{next_day.get('min_temp', 0):.1f}°C",
                "precipitation": f"{next_day.get('precipitation', 0):.1f}mm",
                "precipitation_hours": f"{next_day.get('precipitation_hours', 0)}h",
            } if next_day else None,
        },
        rain_patterns={
            "intensity": w.intensity,
            "duration": f"{w.duration} hours",
            "total_expected": f"{w.total_expected:.1f}mm",
            "periods_count": w.periods_count,
        },
    )


# ---- River -----------------------------------------------------------------

# (min percentile, band, indicator, warning level)
RIVER_BANDS: List[Tuple[float, str, str, str]] = [
    (98, "extreme", "EXTREME", "critical"),
    (95, "very-high", "VERY HIGH", "severe"),
    (90, "high", "HIGH", "moderate"),
    (75, "above-normal", "ABOVE NORMAL", "low"),
    (25, "normal", "NORMAL", "minimal"),
]

RIVER_SCORES: List[Tuple[float, float]] = [
    (98, 95), (95, 85), (90, 75), (75, 60), (50, 40), (25, 25),
]

TREND_DESCRIPTIONS = {
    "rising": "Water levels are rising and may continue to increase",
    "falling": "Water levels are receding from previous highs",
    "stable": "Water levels are relatively stable",
}


def river_band(percentile: float) -> Tuple[str, str, str]:
    """Return (band, visual indicator, warning level) for a discharge percentile."""
    for threshold, band, indicator, warning in RIVER_BANDS:
        if percentile >= threshold:
            return band, indicator, warning
    return "low", "LOW", "minimal"


def river_trend(current: float, average: float) -> str:
    if current > average * 1.2:
        return "rising"
    if current < average * 0.8:
        return "falling"
    return "stable"


def river_score(percentile: float) -> float:
    for threshold, score in RIVER_SCORES:
        if percentile >= threshold:
            return float(score)
    return 10.0


def _river_description(band: str, percentile: float) -> str:
    top = f"{100 - percentile:.0f}"
    return {
        "extreme": f"River discharge at extreme levels - highest {top}% of the year",
        "very-high": f"River discharge very high - top {top}% of the year",
        "high": f"River discharge elevated - top {top}% of the year",
        "above-normal": f"River discharge above normal - top {top}% of the year",
        "normal": "River discharge within normal range",
    }.get(band, "River discharge below normal levels")


def river_risk_factors(percentile: float, trend: str) -> List[str]:
    factors = []
    if percentile >= 95:
        factors.append("River discharge at extreme levels historically associated with flooding")
    if percentile >= 90:
        factors.append("Water levels approaching or exceeding typical flood thresholds")
    if trend == "rising":
        factors.append("Continuing upward trend increases flood likelihood")
    if percentile >= 85 and trend == "rising":
        factors.append("High water levels combined with rising trend creates critical conditions")
    return factors or ["Current water levels within manageable range"]


def flood_risk_contribution(percentile: float) -> str:
    if percentile >= 95:
        return "critical"
    if percentile >= 90:
        return "high"
    if percentile >= 75:
        return "moderate"
    return "minimal"


def analyze_river(r: RiverReading, flood_probability: float) -> RiverAnalysis:
    band, indicator, warning = river_band(r.percentile)
    trend = river_trend(r.current, r.average)
    return RiverAnalysis(
        primary_description=_river_description(band, r.percentile),
        band=band,
        visual_indicator=indicator,
        warning_level=warning,
        flood_risk_contribution=flood_risk_contribution(r.percentile),
        trend_direction=trend,
        trend_description=TREND_DESCRIPTIONS[trend],
        risk_factors=tuple(river_risk_factors(r.percentile, trend)),
        score=river_score(r.percentile),
        current_status={
            "discharge": f"{r.current} m³/s",
            "percentile": f"{r.percentile}%",
            "status": r.status,
        },
        historical_context={
            "average": f"{r.average} m³/s",
            "median": f"{r.median} m³/s",
            "yearly_range": f"{r.min} - {r.max} m³/s",
            "data_points": r.data_points,
        },
    )


# ---- Geography -------------------------------------------------------------

# (upper bound, risk, description template, flood risk level)
ELEVATION_BANDS: List[Tuple[float, str, str, str]] = [
    (10, "critical", "Your area is at very low elevation ({m}m) with extremely high flood risk",
     "Very High - Near sea level or river basin"),
    (50, "high", "Your area is at low elevation ({m}m) with increased flood vulnerability",
     "High - Low-lying area prone to flooding"),
    (100, "moderate", "Your area is at moderate elevation ({m}m) with some flood risk",
     "Moderate - Elevation provides some protection"),
    (200, "low", "Your area is at elevated position ({m}m) with reduced flood risk",
     "Low - Higher ground reduces risk"),
]

ELEVATION_SCORES: List[Tuple[float, float]] = [
    (5, 90), (10, 80), (25, 70), (50, 55), (100, 40), (200, 25),
]


def elevation_band(meters: float) -> Tuple[str, str, str]:
    """Return (risk, description, flood risk level) for an elevation."""
    for upper, risk, template, level in ELEVATION_BANDS:
        if meters < upper:
            return risk, template.format(m=meters), level
    return (
        "minimal",
        f"Your area is at high elevation ({meters}m) with minimal flood risk",
        "Minimal - Elevated terrain well above flood zones",
    )


def geography_score(meters: float) -> float:
    for upper, score in ELEVATION_SCORES:
        if meters < upper:
            return float(score)
    return 15.0


def elevation_category(meters: float) -> str:
    if meters < 10:
        return "Sea level / River plain"
    if meters < 50:
        return "Low-lying area"
    if meters < 100:
        return "Moderate elevation"
    if meters < 200:
        return "Elevated terrain"
    if meters < 500:
        return "Hill country"
    return "Highland area"


def drainage_assessment(lat: float, lon: float, meters: float) -> Dict[str, str]:
    efficiency, description = "moderate", "Standard drainage capacity expected"
    if meters < 10:
        efficiency, description = "poor", "Low elevation severely limits natural drainage"
    elif meters < 50:
        efficiency, description = "limited", "Limited natural drainage due to low elevation"
    elif meters > 100:
        efficiency, description = "good", "Elevation supports natural water runoff"
    if is_near_urban_area(lat, lon):
        description += " (urban drainage systems present)"
    return {"efficiency": efficiency, "description": description}


def analyze_geography(e: ElevationReading, flood_probability: float, lat: float, lon: float) -> GeographyAnalysis:
    meters = e.meters
    risk, description, level = elevation_band(meters)

    mitigating = []
    if meters > 100:
        mitigating.append("Higher elevation provides natural protection")
    if lat > 4:
        mitigating.append("Regional topography may aid water drainage")

    amplifying = []
    if meters < 50:
        amplifying.append("Low elevation increases water accumulation risk")
    if is_near_coastal(lat, lon):
        amplifying.append("Coastal proximity may affect drainage efficiency")
    if is_near_urban_area(lat, lon):
        amplifying.append("Urban development may impact natural drainage patterns")

    return GeographyAnalysis(
        primary_description=description,
        elevation_risk=risk,
        flood_risk_level=level,
        elevation_meters=meters,
        elevation_feet=round(meters * 3.28084),
        elevation_category=elevation_category(meters),
        mitigating_factors=tuple(mitigating),
        amplifying_factors=tuple(amplifying),
        score=geography_score(meters),
        location_characteristics=tuple(location_insights(lat, lon)),
        drainage=drainage_assessment(lat, lon, meters),
        regional_context=regional_context(lat, lon),
    )


# ---- Composite -------------------------------------------------------------

# (min score, level, confidence, summary)
RISK_LEVELS: List[Tuple[float, str, str, str]] = [
    (85, "Critical", "Very High", "Multiple environmental factors combine to create extreme flood conditions"),
    (70, "High", "High", "Several environmental factors indicate significant flood risk"),
    (50, "Moderate", "Moderate", "Environmental conditions create elevated flood potential"),
    (30, "Low", "Moderate", "Current environmental conditions pose limited flood threat"),
]


def risk_level(score: float) -> Tuple[str, str, str]:
    """Return (risk level, confidence, summary) for a composite score."""
    for threshold, level, confidence, summary in RISK_LEVELS:
        if score >= threshold:
            return level, confidence, summary
    return "Very Low", "High", "Environmental factors do not support significant flood development"


def key_risk_factors(w: WeatherReading, r: RiverReading, e: ElevationReading) -> List[str]:
    factors = []
    if w.precipitation > PRECIPITATION_THRESHOLDS["HEAVY"]:
        factors.append("Heavy rainfall currently occurring")
    if w.duration > 8:
        factors.append("Extended precipitation duration")
    if r.percentile >= 90:
        factors.append("River discharge at critical levels")
    if e.meters < 50:
        factors.append("Low elevation increases flood vulnerability")
    return factors


def composite_risk(weather: float, river: float, geographical: float, key_factors: Sequence[str] = ()) -> CompositeRisk:
    raw = (
        weather * COMPONENT_WEIGHTS["weather"]
        + river * COMPONENT_WEIGHTS["river"]
        + geographical * COMPONENT_WEIGHTS["geographical"]
    )
    score = round(_clamp(raw), 2)
    level, confidence, summary = risk_level(score)
    return CompositeRisk(
        score=score,
        risk_level=level,
        confidence=confidence,
        summary=summary,
        components={
            "weather": round(weather, 1),
            "river": round(river, 1),
            "geographical": round(geographical, 1),
        },
        key_factors=tuple(key_factors),
    )
