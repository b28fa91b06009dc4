"""Error types raised inside the flood risk core."""


class FloodRiskError(Exception):
    """Base class for flood risk errors."""


class SourceUnavailable(FloodRiskError):
    """An upstream source adapter failed or timed out."""

    def __init__(self, source: str, reason: str):
        super().__init__(f"{source} unavailable: {reason}")
        self.source = source
        self.reason = reason


class CacheIOError(FloodRiskError):
    """The durable cache layer could not be read or written."""


class InvalidInput(FloodRiskError, ValueError):
    """Coordinates or probability outside their valid range."""
