# scripts/prewarm_cache.py
"""
Warm a running flood report API for the known Malaysian cities.

Requests each city's /flood-report once over HTTP so the server fills its
reading cache (Redis included) and report cache, and records the verdict it
served.  The startup prewarm in main.py does the same in-process; this script
targets any deployment from outside.

Usage:
  python scripts/prewarm_cache.py \
    --base-url http://localhost:8000 \
    --rpm 20 \
    --concurrency 3

Notes
- Requests are spaced 60/--rpm seconds apart; keep --rpm at or below the
  server's RATE_LIMIT_PER_MIN or the tail of the run gets 429s.
- A synthetic report (is_mock) counts as a failure: the server could not reach
  its upstream sources and cached nothing for that city.
"""

import argparse
import csv
import datetime as dt
import os
import sys
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, fields
from typing import List, Optional, Tuple

import requests

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from utils.locations import KNOWN_PLACES  # noqa: E402

# (name, lat, lon, region)
Place = Tuple[str, float, float, str]


@dataclass
class WarmResult:
    place: str
    region: str
    status: int
    risk_level: Optional[str] = None
    score: Optional[float] = None
    is_mock: bool = False
    elapsed_s: float = 0.0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == 200 and not self.is_mock


def known_places(limit: int = 0) -> List[Place]:
    places = [(name, lat, lon, region) for name, (lat, lon, region) in KNOWN_PLACES.items()]
    return places[:limit] if limit > 0 else places


def warm_place(session, base_url: str, place: Place, probability: float, timeout: float = 120.0) -> WarmResult:
    name, lat, lon, region = place
    t0 = time.monotonic()
    try:
        resp = session.get(
            f"{base_url.rstrip('/')}/flood-report",
            params={"lat": lat, "lon": lon, "probability": probability},
            timeout=timeout,
        )
    except requests.RequestException as e:
        return WarmResult(name, region, 0, elapsed_s=round(time.monotonic() - t0, 3), error=str(e)[:300])

    elapsed = round(time.monotonic() - t0, 3)
    if resp.status_code != 200:
        return WarmResult(name, region, resp.status_code, elapsed_s=elapsed, error=resp.text[:300])
    try:
        report = resp.json()
    except ValueError as e:
        return WarmResult(name, region, resp.status_code, elapsed_s=elapsed, error=f"unreadable report: {e}")

    overall = report.get("overall_risk") or {}
    is_mock = bool(report.get("is_mock")) or resp.headers.get("X-Mock") == "1"
    return WarmResult(
        name,
        region,
        resp.status_code,
        risk_level=overall.get("risk_level"),
        score=overall.get("score"),
        is_mock=is_mock,
        elapsed_s=elapsed,
        error="upstream unavailable, synthetic report not cached" if is_mock else None,
    )


def warm_all(base_url: str, places: List[Place], probability: float, rpm: int, concurrency: int,
             session=None) -> List[WarmResult]:
    if rpm < 1 or concurrency < 1:
        raise ValueError("rpm and concurrency must be >= 1")
    session = session or requests.Session()
    interval = 60.0 / rpm

    with ThreadPoolExecutor(max_workers=concurrency) as ex:
        futures = []
        for i, place in enumerate(places):
            if i:
                time.sleep(interval)
            futures.append(ex.submit(warm_place, session, base_url, place, probability))
        results = [f.result() for f in futures]

    for r in results:
        verdict = f"{r.risk_level} ({r.score})" if r.ok else f"FAILED [{r.status}] {r.error}"
        print(f"  {r.place:<15} {verdict}  {r.elapsed_s}s")
    return results


def summarize(results: List[WarmResult]) -> Counter:
    """Count verdicts by risk level; failures are counted as 'mock' or 'failed'."""
    counts: Counter = Counter()
    for r in results:
        if r.ok:
            counts[r.risk_level] += 1
        else:
            counts["mock" if r.is_mock else "failed"] += 1
    return counts


def write_log(results: List[WarmResult], path: str) -> None:
    with open(path, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=[fl.name for fl in fields(WarmResult)])
        w.writeheader()
        w.writerows(asdict(r) for r in sorted(results, key=lambda r: r.place))


def main(argv=None):
    p = argparse.ArgumentParser()
    p.add_argument("--base-url", default="http://localhost:8000", help="Your API base URL")
    p.add_argument("--rpm", type=int, default=20, help="Requests per minute; stay under RATE_LIMIT_PER_MIN")
    p.add_argument("--concurrency", type=int, default=3, help="Requests in flight at once")
    p.add_argument("--probability", type=float, default=0.5, help="Flood probability to request reports for")
    p.add_argument("--limit", type=int, default=0, help="Limit number of places (for testing)")
    p.add_argument("--out", default=None, help="CSV log path (default: timestamped file in cwd)")
    p.add_argument("--dry-run", action="store_true", help="List places, but do not call the API")
    args = p.parse_args(argv)

    places = known_places(args.limit)
    if args.dry_run:
        for name, lat, lon, region in places:
            print(f"{name} ({region}): {lat}, {lon}")
        return []

    print(f"Warming {len(places)} places against {args.base_url} at {args.rpm} rpm")
    results = warm_all(args.base_url, places, args.probability, args.rpm, args.concurrency)

    out = args.out or f"prewarm_flood_log_{dt.datetime.now(dt.timezone.utc):%Y%m%d_%H%M%S}.csv"
    write_log(results, out)
    counts = summarize(results)
    ok = sum(1 for r in results if r.ok)
    print(f"\nDone. {ok}/{len(results)} cached. Verdicts: {dict(counts)}. Log: {out}")
    return results


if __name__ == "__main__":
    main()
