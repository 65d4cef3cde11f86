import logging
from dataclasses import dataclass, replace
from typing import List, Optional

from pydantic import ValidationError

from forecaster.models import (
    ForecastData,
    ForecastFailure,
    ForecastPoint,
    ForecastResult,
    ForecastSuccess,
    WeatherCache,
    WeatherSnapshot,
)
from forecaster.repositories.cache import ForecastCache
from forecaster.services.base import GeocodeResolver, WeatherProvider
from forecaster.services.validators import extract_zip, is_blank

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Lookup:
    """What is known about the requested location at a given pipeline stage."""

    address: str
    include_forecast: bool
    zip_code: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    location: Optional[str] = None


class ForecastOrchestrator:
    """
    Address in, weather out.

    Checks the cache with any zip typed by the user, geocodes, checks the
    cache again with the resolved zip, and only then calls the weather
    provider. Fresh results are written back to the cache.
    Never raises: every outcome is a ForecastSuccess or ForecastFailure.
    """

    def __init__(
        self,
        geocoder: GeocodeResolver,
        provider: WeatherProvider,
        cache: Optional[ForecastCache] = None,
    ):
        self._geocoder = geocoder
        self._provider = provider
        self._cache = cache or ForecastCache()

    def get_forecast(self, address: Optional[str], include_forecast: bool = False) -> ForecastResult:
        if is_blank(address):
            return ForecastFailure(error="Address is required")

        try:
            return self._run(Lookup(address=address, include_forecast=include_forecast))
        except Exception as e:
            logger.exception("Forecast pipeline error for %r", address)
            return ForecastFailure(error=f"An unexpected error occurred: {e}")

    def _run(self, lookup: Lookup) -> ForecastResult:
        # Zip typed by the user: the cache may answer without any upstream call.
        lookup = replace(lookup, zip_code=extract_zip(lookup.address))
        if lookup.zip_code:
            cached = self._try_cache(lookup)
            if cached:
                return cached

        geocoded = self._geocoder.geocode(lookup.address)
        if not geocoded.success:
            return ForecastFailure(error=geocoded.error or "Unable to find location for the provided address")

        lookup = replace(
            lookup,
            lat=geocoded.lat,
            lon=geocoded.lon,
            location=geocoded.location,
            zip_code=lookup.zip_code or geocoded.zip,
        )

        if lookup.zip_code:
            cached = self._try_cache(lookup, location=lookup.location)
            if cached:
                return cached

        return self._fetch_and_cache(lookup)

    def _try_cache(self, lookup: Lookup, location: Optional[str] = None) -> Optional[ForecastSuccess]:
        entry = self._cache.find_valid(lookup.zip_code)
        if entry is None:
            logger.info("Cache miss for zip %s", lookup.zip_code)
            return None

        try:
            blob = ForecastData.from_blob(entry.forecast_data)
        except ValidationError as e:
            logger.warning("Unreadable cached data for zip %s, fetching fresh: %s", lookup.zip_code, e)
            return None

        if lookup.include_forecast and blob.forecast is None:
            logger.info("Cache exists for zip %s but has no forecast, fetching fresh", lookup.zip_code)
            return None

        logger.info("Cache hit for zip %s", lookup.zip_code)
        return self._cached_response(entry, blob, location)

    def _cached_response(
        self,
        entry: WeatherCache,
        blob: ForecastData,
        location_override: Optional[str] = None,
    ) -> ForecastSuccess:
        weather = WeatherSnapshot(
            temperature=entry.temperature,
            high_temp=entry.high_temp,
            low_temp=entry.low_temp,
            conditions=entry.conditions,
            humidity=blob.humidity,
            wind_speed=blob.wind_speed,
            feels_like=blob.feels_like,
            icon=blob.icon,
        )
        return ForecastSuccess(
            from_cache=True,
            cached_at=self._cache.status_label(entry),
            weather=weather,
            forecast=blob.forecast,
            location=location_override or entry.location,
            zip_code=entry.zip_code,
        )

    def _fetch_and_cache(self, lookup: Lookup) -> ForecastResult:
        current = self._provider.fetch_current(lookup.lat, lookup.lon)
        if not current.success:
            return ForecastFailure(error=current.error or "Unable to fetch weather data")

        forecast = self._forecast_if_needed(lookup)
        if lookup.zip_code:
            self._store(lookup, current.snapshot, forecast)

        return ForecastSuccess(
            from_cache=False,
            weather=current.snapshot,
            forecast=forecast,
            location=lookup.location,
            zip_code=lookup.zip_code,
        )

    def _forecast_if_needed(self, lookup: Lookup) -> Optional[List[ForecastPoint]]:
        if not lookup.include_forecast:
            return None

        result = self._provider.fetch_forecast(lookup.lat, lookup.lon)
        if not result.success:
            logger.warning("Forecast unavailable for %s: %s", lookup.location, result.error)
            return None
        return result.forecast

    def _store(self, lookup: Lookup, snapshot: WeatherSnapshot, forecast: Optional[List[ForecastPoint]]):
        # The weather is already in hand; a cache write failure must not fail the request.
        try:
            self._cache.store(lookup.zip_code, lookup.location, snapshot, forecast)
        except Exception as e:
            logger.error("Failed to cache weather data for zip %s: %s", lookup.zip_code, e)
