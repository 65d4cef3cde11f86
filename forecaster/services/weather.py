import logging
import string
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from forecaster.config import Settings, get_settings
from forecaster.models import ForecastFetchResult, ForecastPoint, WeatherResult, WeatherSnapshot
from forecaster.services.base import MissingApiKeyError, api_error_message
from forecaster.services.validators import is_blank, round_half_up, to_percent

logger = logging.getLogger(__name__)

CURRENT_PATH = "/data/2.5/weather"
FORECAST_PATH = "/data/2.5/forecast"
UNITS = "imperial"  # Fahrenheit, mph


def _titleize(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    return string.capwords(str(text))


def _first_weather(data: Dict[str, Any]) -> Dict[str, Any]:
    weather = data.get("weather") or [{}]
    return weather[0] or {}


def parse_current(data: Dict[str, Any]) -> WeatherSnapshot:
    main = data.get("main") or {}
    weather = _first_weather(data)
    sys = data.get("sys") or {}
    return WeatherSnapshot(
        temperature=round_half_up(main.get("temp")),
        feels_like=round_half_up(main.get("feels_like")),
        high_temp=round_half_up(main.get("temp_max")),
        low_temp=round_half_up(main.get("temp_min")),
        conditions=_titleize(weather.get("description")),
        humidity=main.get("humidity"),
        wind_speed=(data.get("wind") or {}).get("speed"),
        pressure=main.get("pressure"),
        visibility=data.get("visibility"),
        icon=weather.get("icon"),
        sunrise=sys.get("sunrise"),
        sunset=sys.get("sunset"),
    )


def parse_forecast_point(entry: Dict[str, Any]) -> ForecastPoint:
    timestamp = datetime.fromtimestamp(entry["dt"], tz=timezone.utc)
    main = entry.get("main") or {}
    weather = _first_weather(entry)
    return ForecastPoint(
        datetime=timestamp,
        date=timestamp.strftime("%Y-%m-%d"),
        time=timestamp.strftime("%I:%M %p"),
        temperature=round_half_up(main.get("temp")),
        feels_like=round_half_up(main.get("feels_like")),
        temp_min=round_half_up(main.get("temp_min")),
        temp_max=round_half_up(main.get("temp_max")),
        conditions=_titleize(weather.get("description")),
        icon=weather.get("icon"),
        humidity=main.get("humidity"),
        wind_speed=(entry.get("wind") or {}).get("speed"),
        pop=to_percent(entry.get("pop")),
    )


def parse_forecast(data: Dict[str, Any]) -> List[ForecastPoint]:
    entries = data.get("list")
    if not isinstance(entries, list):
        return []
    return [parse_forecast_point(e) for e in entries]


class OpenWeatherProvider:
    """
    Current conditions and the 5-day / 3-hour forecast from OpenWeather.
    Translation only: no caching, no geocoding.
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

    def fetch_current(self, lat: Optional[float], lon: Optional[float]) -> WeatherResult:
        if is_blank(lat) or is_blank(lon):
            return WeatherResult(success=False, error="Latitude and longitude are required")

        try:
            r = self._get(CURRENT_PATH, lat, lon)
            if not r.is_success:
                return WeatherResult(success=False, error=self._api_error(r))
            return WeatherResult(success=True, snapshot=parse_current(r.json()))
        except Exception as e:
            logger.error("Weather API error: %s", e)
            return WeatherResult(success=False, error=f"An error occurred while fetching weather data: {e}")

    def fetch_forecast(self, lat: Optional[float], lon: Optional[float]) -> ForecastFetchResult:
        if is_blank(lat) or is_blank(lon):
            return ForecastFetchResult(success=False, error="Latitude and longitude are required")

        try:
            r = self._get(FORECAST_PATH, lat, lon)
            if not r.is_success:
                return ForecastFetchResult(success=False, error=self._api_error(r))
            return ForecastFetchResult(success=True, forecast=parse_forecast(r.json()))
        except Exception as e:
            logger.error("Forecast API error: %s", e)
            return ForecastFetchResult(success=False, error=f"An error occurred while fetching forecast data: {e}")

    def _get(self, path: str, lat: float, lon: float) -> httpx.Response:
        params = {"lat": lat, "lon": lon, "units": UNITS, "appid": self._api_key}
        with httpx.Client(base_url=self._base_url, timeout=self._timeout, transport=self._transport) as client:
            return client.get(path, params=params)

    def _api_error(self, response: httpx.Response) -> str:
        message = api_error_message(
            response.status_code,
            not_found="Weather data not found for the specified location",
            rate_limited="API rate limit exceeded. Please try again later.",
        )
        logger.warning("Weather API returned %s: %s", response.status_code, message)
        return message
