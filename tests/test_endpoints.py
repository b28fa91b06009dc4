import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api import endpoints
from utils.aggregator import FloodReportAggregator
from utils.cache import MultiTierCache
from utils.errors import SourceUnavailable
from utils.locations import LocationClassifier

from conftest import MemoryStore, elevation_payload, river_payload, weather_payload


class Upstream:
    def __init__(self):
        self.down = False
        self.calls = 0

    def weather(self, lat, lon):
        self.calls += 1
        if self.down:
            raise SourceUnavailable("weather", "HTTP 502")
        return weather_payload(precipitation=25, humidity=95, pressure=998)

    def river(self, lat, lon):
        return river_payload(current=180, average=100, percentile=99)

    def elevation(self, lat, lon):
        return elevation_payload(8)


@pytest.fixture
def upstream():
    return Upstream()


@pytest.fixture
def app(upstream, clock):
    endpoints._request_log.clear()
    cache = MultiTierCache(store=MemoryStore(), clock=clock)
    app = FastAPI()
    app.include_router(endpoints.router)
    app.state.cache = cache
    app.state.classifier = LocationClassifier(region_cache=cache.regions)
    app.state.aggregator = FloodReportAggregator(
        cache,
        fetch_weather=upstream.weather,
        fetch_river=upstream.river,
        fetch_elevation=upstream.elevation,
    )
    yield app
    app.state.aggregator.close()
    endpoints._request_log.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


KL = {"lat": 3.139, "lon": 101.687, "probability": 0.9}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_flood_report(client):
    resp = client.get("/flood-report", params=KL)
    assert resp.status_code == 200
    assert resp.headers["X-Mock"] == "0"
    assert resp.headers["Cache-Control"] == "public, max-age=300"
    data = resp.json()
    assert data["is_mock"] is False
    assert data["location"] == {"latitude": 3.139, "longitude": 101.687}
    assert data["overall_risk"]["risk_level"] == "High"
    assert data["overall_risk"]["score"] == pytest.approx(71.25)
    assert data["river_status"]["visual_indicator"] == "EXTREME"


def test_flood_report_default_probability(client):
    resp = client.get("/flood-report", params={"lat": 3.139, "lon": 101.687})
    assert resp.json()["weather_conditions"]["severity_level"] == "moderate"


def test_mock_report_is_flagged(client, upstream):
    upstream.down = True
    resp = client.get("/flood-report", params=KL)
    assert resp.status_code == 200
    assert resp.headers["X-Mock"] == "1"
    assert resp.headers["Cache-Control"] == "no-store"
    assert resp.json()["is_mock"] is True


@pytest.mark.parametrize("params", [
    {"lat": 95, "lon": 101.687},
    {"lat": 3.139, "lon": 200},
    {"lat": "north", "lon": 101.687},
    {"lon": 101.687},
])
def test_invalid_parameters(client, upstream, params):
    assert client.get("/flood-report", params=params).status_code == 422
    assert upstream.calls == 0


def test_etag_not_modified(client, upstream):
    first = client.get("/flood-report", params=KL)
    etag = first.headers["ETag"]
    again = client.get("/flood-report", params=KL, headers={"If-None-Match": etag})
    assert again.status_code == 304
    assert again.headers["ETag"] == etag
    assert upstream.calls == 1
    assert client.get("/flood-report", params=KL, headers={"If-None-Match": "stale"}).status_code == 200


def test_region_lookup(client):
    data = client.get("/region", params={"lat": 5.98, "lon": 116.07}).json()
    assert data["region"] == "Sabah"
    assert data["within_service_area"] is True
    assert data["nearest"]["name"] == "Kota Kinabalu"


def test_region_outside_service_area(client):
    data = client.get("/region", params={"lat": 40.7, "lon": -74.0}).json()
    assert data["region"] == "Selangor"
    assert data["within_service_area"] is False


@pytest.mark.parametrize("params", [
    {"lat": "nan", "lon": 101.0},
    {"lat": 3.1, "lon": "inf"},
    {"lat": -91, "lon": 101.0},
])
def test_region_rejects_bad_coordinates(client, params):
    resp = client.get("/region", params=params)
    assert resp.status_code == 422


def test_flood_report_rejects_nan(client, upstream):
    assert client.get("/flood-report", params={"lat": "nan", "lon": 101.0}).status_code == 422
    assert upstream.calls == 0


@pytest.mark.parametrize("probability,severity", [(1.5, "critical"), (-2, "low")])
def test_flood_report_clamps_probability(client, probability, severity):
    resp = client.get("/flood-report", params={"lat": 3.139, "lon": 101.687, "probability": probability})
    assert resp.status_code == 200
    assert resp.json()["weather_conditions"]["severity_level"] == severity


def test_sweep_includes_expired_reports(client, app, clock):
    for lat in (3.10, 3.11, 3.12):
        assert client.get("/flood-report", params={"lat": lat, "lon": 101.687}).status_code == 200
    assert len(app.state.aggregator.reports) == 3

    clock.advance(301)
    # readings are still within the stale window, only the reports expire
    assert client.post("/cache/sweep").json() == {"removed": 3}
    assert len(app.state.aggregator.reports) == 0


def test_cache_endpoints(client, upstream):
    client.get("/flood-report", params=KL)
    stats = client.get("/cache/stats").json()
    assert stats["memory_entries"] == 3
    assert stats["durable_entries"] == 3

    assert client.post("/cache/sweep").json() == {"removed": 0}

    assert client.delete("/cache").json() == {"cleared": True}
    assert client.get("/cache/stats").json()["memory_entries"] == 0
    client.get("/flood-report", params=KL)
    assert upstream.calls == 2


def test_rate_limit(client, monkeypatch):
    monkeypatch.setattr(endpoints, "RATE_LIMIT_PER_MIN", 2)
    assert client.get("/flood-report", params=KL).status_code == 200
    assert client.get("/flood-report", params=KL).status_code == 200
    assert client.get("/flood-report", params=KL).status_code == 429
    other = client.get("/flood-report", params=KL, headers={"X-Forwarded-For": "10.0.0.7, 10.0.0.1"})
    assert other.status_code == 200
