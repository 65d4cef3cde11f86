import logging
from typing import Any, Dict, Optional

import httpx

from forecaster.config import Settings, get_settings
from forecaster.models import GeocodeResult
from forecaster.services.base import MissingApiKeyError, api_error_message
from forecaster.services.validators import extract_city_state, extract_zip, is_blank

logger = logging.getLogger(__name__)

ZIP_PATH = "/geo/1.0/zip"
DIRECT_PATH = "/geo/1.0/direct"
REVERSE_PATH = "/geo/1.0/reverse"


def _format_location_name(data: Dict[str, Any]) -> str:
    # "New York, NY, US"; missing parts are skipped.
    parts = [data.get("name"), data.get("state"), data.get("country")]
    return ", ".join(str(p) for p in parts if p)


class OpenWeatherGeocoder:
    """
    Resolve free-form text to lat/lon plus a zip code using OpenWeather's
    geocoding API.

    Strategy, first success wins:
      - a 5-digit zip anywhere in the text goes to the zip endpoint;
      - "City, ST" parsed out of the text goes to the direct endpoint;
      - the full text goes to the direct endpoint.
    Direct lookups backfill the zip through a reverse lookup.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        settings = settings or get_settings()
        key = api_key if api_key is not None else settings.openweather_api_key
        if is_blank(key):
            raise MissingApiKeyError("OPENWEATHER_API_KEY environment variable is not set")
        self._api_key = key.strip()
        self._base_url = settings.openweather_base_url
        self._timeout = settings.http_timeout_seconds
        self._transport = transport

    def geocode(self, address: Optional[str]) -> GeocodeResult:
        if is_blank(address):
            return GeocodeResult.failed("Address cannot be blank")

        try:
            return self._geocode_cascade(address)
        except Exception as e:
            logger.error("Geocoding error for %r: %s", address, e)
            return GeocodeResult.failed(f"An error occurred while geocoding the address: {e}")

    def _geocode_cascade(self, address: str) -> GeocodeResult:
        zip_code = extract_zip(address)
        if zip_code:
            result = self._geocode_zip(zip_code)
            if result.success:
                return result

        city_state = extract_city_state(address)
        if city_state:
            result = self._geocode_city_state(city_state, zip_code)
            if result.success:
                return result

        return self._geocode_full_address(address, zip_code)

    def _get(self, path: str, params: Dict[str, Any]) -> httpx.Response:
        query = dict(params, appid=self._api_key)
        with httpx.Client(base_url=self._base_url, timeout=self._timeout, transport=self._transport) as client:
            return client.get(path, params=query)

    def _api_error(self, response: httpx.Response) -> GeocodeResult:
        message = api_error_message(
            response.status_code,
            not_found="Location not found",
            rate_limited="API rate limit exceeded",
        )
        logger.warning("Geocoding API returned %s: %s", response.status_code, message)
        return GeocodeResult.failed(message)

    def _geocode_zip(self, zip_code: str) -> GeocodeResult:
        logger.info("Attempting zip code geocoding: %s", zip_code)
        try:
            r = self._get(ZIP_PATH, {"zip": f"{zip_code},US"})
            if not r.is_success:
                return self._api_error(r)
            data = r.json()
            if not data:
                return GeocodeResult.failed(f"Unable to find location for zip code {zip_code}")
            return GeocodeResult.found(
                data["lat"],
                data["lon"],
                zip_code,
                f"{data.get('name')}, {data.get('country')}",
            )
        except Exception as e:
            logger.warning("Zip code geocoding failed: %s", e)
            return GeocodeResult.failed(f"Unable to geocode zip code {zip_code}")

    def _geocode_city_state(self, city_state: str, fallback_zip: Optional[str]) -> GeocodeResult:
        logger.info("Attempting city/state geocoding: %s", city_state)
        r = self._get(DIRECT_PATH, {"q": city_state, "limit": 1})
        logger.info("City/state API response: %s", r.status_code)

        data = r.json() if r.is_success else None
        if not data:
            return GeocodeResult.failed("Location not found")
        return self._resolved(data[0], fallback_zip)

    def _geocode_full_address(self, address: str, fallback_zip: Optional[str]) -> GeocodeResult:
        logger.info("Attempting full address geocoding: %s", address)
        r = self._get(DIRECT_PATH, {"q": address, "limit": 1})
        logger.info("Full address API response: %s", r.status_code)

        if not r.is_success:
            return self._api_error(r)
        data = r.json()
        if not data:
            return GeocodeResult.failed("Unable to find location for the provided address")
        return self._resolved(data[0], fallback_zip)

    def _resolved(self, top: Dict[str, Any], fallback_zip: Optional[str]) -> GeocodeResult:
        lat, lon = top["lat"], top["lon"]
        zip_code = self._reverse_zip(lat, lon) or fallback_zip
        return GeocodeResult.found(lat, lon, zip_code, _format_location_name(top))

    def _reverse_zip(self, lat: float, lon: float) -> Optional[str]:
        try:
            r = self._get(REVERSE_PATH, {"lat": lat, "lon": lon, "limit": 1})
            if not r.is_success:
                return None
            data = r.json()
            if not data:
                return None
            return data[0].get("zip")
        except Exception as e:
            logger.warning("Reverse geocoding failed: %s", e)
            return None
