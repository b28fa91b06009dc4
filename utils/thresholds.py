"""
Static threshold tables used by the flood risk scoring rules.

Precipitation bands are in mm/h and river level bands in feet.  These are
plain data; the comparisons that use them live in ``utils.scoring``.
"""

PRECIPITATION_THRESHOLDS = {
    "LIGHT": 2.5,
    "MODERATE": 10.0,
    "HEAVY": 50.0,
    "EXTREME": 100.0,
}

RIVER_LEVEL_THRESHOLDS = {
    "NORMAL_MIN": 4.0,
    "NORMAL_MAX": 6.0,
    "WARNING": 8.0,
    "DANGER": 10.0,
}

# Composite weighting: weather, river, geography
COMPONENT_WEIGHTS = {
    "weather": 0.40,
    "river": 0.35,
    "geographical": 0.25,
}

# Hourly rainfall above this counts towards a continuous rain period
SIGNIFICANT_RAIN_MM_H = 1.0


def precipitation_band(mm_h: float) -> str:
    """Label an hourly rainfall rate; anything at or below LIGHT is NONE."""
    for label in ("EXTREME", "HEAVY", "MODERATE", "LIGHT"):
        if mm_h > PRECIPITATION_THRESHOLDS[label]:
            return label
    return "NONE"


def river_level_band(level_ft: float) -> str:
    """Label a river stage in feet as NORMAL, WARNING or DANGER."""
    if level_ft >= RIVER_LEVEL_THRESHOLDS["DANGER"]:
        return "DANGER"
    if level_ft >= RIVER_LEVEL_THRESHOLDS["WARNING"]:
        return "WARNING"
    return "NORMAL"
