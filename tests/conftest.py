from typing import Dict, List, Optional

import pytest

from utils.cache import MultiTierCache
from utils.errors import CacheIOError


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MemoryStore:
    """Dict-backed durable store with the same contract as RedisStore."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.reads = 0

    def read(self, key: str) -> Optional[str]:
        self.reads += 1
        return self.data.get(key)

    def write(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self.data)


class FailingStore:
    def read(self, key):
        raise CacheIOError("disk on fire")

    def write(self, key, value):
        raise CacheIOError("disk on fire")

    def delete(self, key):
        raise CacheIOError("disk on fire")

    def keys(self):
        raise CacheIOError("disk on fire")


def weather_payload(precipitation=0.0, humidity=70.0, pressure=1012.0, wind_speed=8.0,
                    duration=0, next_24h=0.0, temperature=29.0):
    return {
        "current": {
            "temperature": temperature,
            "precipitation": precipitation,
            "humidity": humidity,
            "wind_speed": wind_speed,
            "pressure": pressure,
            "conditions": "Clear",
        },
        "forecast": {
            "hourly": [{"time": "2026-10-19T00:00", "temperature": temperature, "precipitation": precipitation}],
            "daily": [{"date": "2026-10-19", "max_temp": 32.0, "min_temp": 24.0,
                       "precipitation": next_24h, "precipitation_hours": 0}],
        },
        "analysis": {
            "description": "No significant rainfall expected",
            "intensity": "none",
            "duration": duration,
            "total_expected": 0.0,
            "periods_count": 0,
        },
    }


def river_payload(current=100.0, percentile=50.0, average=100.0):
    return {
        "current": current,
        "statistics": {
            "percentile": percentile,
            "average": average,
            "median": average,
            "min": 10.0,
            "max": 400.0,
            "status": "normal",
            "description": "Normal range",
        },
        "historical_data": {"data_points": 360},
    }


def elevation_payload(meters=120.0):
    return {"elevation": meters}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def cache(store, clock):
    return MultiTierCache(store=store, clock=clock)
