from __future__ import annotations

from typing import Optional, Protocol

from forecaster.models import ForecastFetchResult, GeocodeResult, WeatherResult


class MissingApiKeyError(RuntimeError):
    """Raised when an upstream client is built without an API key."""


class GeocodeResolver(Protocol):
    def geocode(self, address: Optional[str]) -> GeocodeResult:
        """Resolve free-form text to coordinates, a zip code and a display name."""


class WeatherProvider(Protocol):
    def fetch_current(self, lat: Optional[float], lon: Optional[float]) -> WeatherResult:
        """Fetch current conditions for the provided coordinates."""

    def fetch_forecast(self, lat: Optional[float], lon: Optional[float]) -> ForecastFetchResult:
        """Fetch the 5-day / 3-hour forecast for the provided coordinates."""


def api_error_message(status_code: int, *, not_found: str, rate_limited: str) -> str:
    if status_code == 401:
        return "Invalid API key"
    if status_code == 404:
        return not_found
    if status_code == 429:
        return rate_limited
    return f"API request failed with status {status_code}"
