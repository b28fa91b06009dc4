"""
FastAPI endpoints exposing the flood risk report API.

The `/flood-report` route returns the environmental flood analysis for a
coordinate pair.  Reports always come back complete; the `X-Mock` header
(and the `is_mock` field) tell the client when upstream data was unavailable
and a synthetic report was served instead.  Repetitive queries are rate
limited per client IP.
"""

from fastapi import APIRouter, Request, HTTPException, Response
from typing import Dict
import os
import time
import hashlib
import json

from utils.errors import InvalidInput

router = APIRouter()

# Simple rate limiter per client IP
RATE_LIMIT_PER_MIN = int(os.getenv("RATE_LIMIT_PER_MIN", "30"))
_request_log: Dict[str, list] = {}


def rate_limiter(request: Request):
    """
    Limit the number of requests from a single client per minute.

    Raise HTTPException with status 429 if the client has exceeded
    RATE_LIMIT_PER_MIN requests within the last 60 seconds.  Honors
    X-Forwarded-For when present.
    """
    client_ip = (request.headers.get("x-forwarded-for", "").split(",")[0].strip()
                 or (request.client.host if request.client else "unknown"))
    now = time.time()
    calls = _request_log.get(client_ip, [])
    calls = [t for t in calls if now - t < 60]
    if len(calls) >= RATE_LIMIT_PER_MIN:
        raise HTTPException(status_code=429, detail="Rate limit exceeded. Try again later.")
    calls.append(now)
    _request_log[client_ip] = calls


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/flood-report")
def flood_report(lat: float, lon: float, request: Request, probability: float = 0.5):
    """
    Compute or retrieve the environmental flood report for a location.

    `probability` is the caller's current flood probability estimate, clamped
    to 0-1; it drives the weather severity label and is part of the report
    cache key.
    Returns 304 Not Modified when the client presents a matching ETag.
    """
    rate_limiter(request)

    aggregator = request.app.state.aggregator
    try:
        report = aggregator.generate_report(lat, lon, probability)
    except InvalidInput as e:
        raise HTTPException(status_code=422, detail=str(e))

    body = json.dumps(report.to_dict(), sort_keys=True)
    etag = hashlib.sha256(body.encode("utf-8")).hexdigest()
    headers = {
        "ETag": etag,
        "Cache-Control": "no-store" if report.is_mock else "public, max-age=300",
        "X-Mock": "1" if report.is_mock else "0",
    }
    if request.headers.get("if-none-match") == etag:
        return Response(status_code=304, headers=headers)
    return Response(content=body, media_type="application/json", headers=headers)


@router.get("/region")
def region(lat: float, lon: float, request: Request):
    """
    Offline region lookup: the state whose bounding box contains the point,
    whether the point is inside the service area, and the nearest major city.
    """
    classifier = request.app.state.classifier
    try:
        return {
            "latitude": lat,
            "longitude": lon,
            "region": classifier.region_for(lat, lon),
            "within_service_area": classifier.is_within_service_area(lat, lon),
            "nearest": classifier.nearest_known_place(lat, lon),
        }
    except InvalidInput as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/cache/stats")
def cache_stats(request: Request):
    return request.app.state.cache.stats()


@router.post("/cache/sweep")
def cache_sweep(request: Request):
    """
    Remove reading entries older than the longest validity window, expired
    region lookups and expired reports.
    """
    removed = request.app.state.cache.sweep() + request.app.state.aggregator.sweep()
    return {"removed": removed}


@router.delete("/cache")
def cache_clear(request: Request):
    request.app.state.cache.invalidate_all()
    request.app.state.aggregator.reports.clear()
    return {"cleared": True}
