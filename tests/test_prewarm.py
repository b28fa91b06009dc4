import csv

import pytest
import requests

from scripts import prewarm_cache
from scripts.prewarm_cache import WarmResult, known_places, main, summarize, warm_all, warm_place, write_log

IPOH = ("Ipoh", 4.5975, 101.0901, "Perak")


class FakeResponse:
    def __init__(self, status_code=200, report=None, mock=False, text=""):
        self.status_code = status_code
        self.headers = {"X-Mock": "1" if mock else "0"}
        self._report = report
        self.text = text

    def json(self):
        if self._report is None:
            raise ValueError("Expecting value")
        return self._report


def report(level="High", score=71.25, is_mock=False):
    return {"overall_risk": {"risk_level": level, "score": score}, "is_mock": is_mock}


class FakeSession:
    def __init__(self, responses=None, error=None):
        self.responses = responses or {}
        self.error = error
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params))
        if self.error is not None:
            raise self.error
        return self.responses.get((params["lat"], params["lon"]), FakeResponse(report=report()))


def test_known_places():
    places = known_places()
    assert len(places) == 12
    assert places[0] == ("Kuala Lumpur", 3.1390, 101.6869, "Kuala Lumpur")
    assert len(known_places(3)) == 3


def test_warm_place_records_verdict():
    session = FakeSession()
    res = warm_place(session, "http://api.local/", IPOH, 0.5)
    assert res.ok
    assert (res.risk_level, res.score) == ("High", 71.25)
    assert session.calls == [("http://api.local/flood-report", {"lat": 4.5975, "lon": 101.0901, "probability": 0.5})]


@pytest.mark.parametrize("response", [
    FakeResponse(report=report(is_mock=True)),
    FakeResponse(report=report(), mock=True),
])
def test_synthetic_report_is_a_failure(response):
    res = warm_place(FakeSession({(4.5975, 101.0901): response}), "http://api.local", IPOH, 0.5)
    assert res.is_mock is True
    assert res.ok is False
    assert "synthetic" in res.error


def test_warm_place_http_and_transport_errors():
    limited = FakeSession({(4.5975, 101.0901): FakeResponse(status_code=429, text="Rate limit exceeded")})
    res = warm_place(limited, "http://api.local", IPOH, 0.5)
    assert (res.status, res.ok, res.error) == (429, False, "Rate limit exceeded")

    garbled = FakeSession({(4.5975, 101.0901): FakeResponse(report=None)})
    assert warm_place(garbled, "http://api.local", IPOH, 0.5).error.startswith("unreadable report")

    down = warm_place(FakeSession(error=requests.ConnectionError("refused")), "http://api.local", IPOH, 0.5)
    assert down.status == 0
    assert down.ok is False


def test_warm_all_spaces_requests(monkeypatch):
    sleeps = []
    monkeypatch.setattr(prewarm_cache.time, "sleep", sleeps.append)
    results = warm_all("http://api.local", known_places(4), 0.5, rpm=30, concurrency=2, session=FakeSession())
    assert [r.place for r in results] == ["Kuala Lumpur", "Puchong", "Shah Alam", "Petaling Jaya"]
    assert sleeps == [2.0, 2.0, 2.0]


def test_warm_all_rejects_bad_rate():
    with pytest.raises(ValueError):
        warm_all("http://api.local", known_places(1), 0.5, rpm=0, concurrency=1, session=FakeSession())


def test_summarize():
    results = [
        WarmResult("A", "X", 200, "High", 71.0),
        WarmResult("B", "X", 200, "High", 72.0),
        WarmResult("C", "X", 200, "Low", 35.0),
        WarmResult("D", "X", 200, is_mock=True),
        WarmResult("E", "X", 0, error="refused"),
    ]
    assert summarize(results) == {"High": 2, "Low": 1, "mock": 1, "failed": 1}


def test_write_log(tmp_path):
    path = tmp_path / "log.csv"
    write_log([WarmResult("Kuching", "Sarawak", 200, "Low", 31.5), WarmResult("Ipoh", "Perak", 0, error="x")], str(path))
    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert [r["place"] for r in rows] == ["Ipoh", "Kuching"]
    assert rows[1]["risk_level"] == "Low"


def test_dry_run_calls_nothing(capsys, monkeypatch):
    monkeypatch.setattr(prewarm_cache, "warm_all", lambda *a, **kw: pytest.fail("API called"))
    assert main(["--dry-run", "--limit", "2"]) == []
    out = capsys.readouterr().out
    assert "Kuala Lumpur (Kuala Lumpur): 3.139, 101.6869" in out
    assert "Puchong (Selangor)" in out
