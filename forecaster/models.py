import re
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

ZIP_CODE_RE = re.compile(r"^\d{5}$")
LEGACY_DATA_HASH = "legacy"


class GeocodeResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    lat: Optional[float] = None
    lon: Optional[float] = None
    zip: Optional[str] = None
    location: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def found(cls, lat: float, lon: float, zip_code: Optional[str], location: str) -> "GeocodeResult":
        return cls(success=True, lat=lat, lon=lon, zip=zip_code, location=location)

    @classmethod
    def failed(cls, message: str) -> "GeocodeResult":
        return cls(success=False, error=message)


class WeatherSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    temperature: Optional[float] = None
    feels_like: Optional[float] = None
    high_temp: Optional[float] = None
    low_temp: Optional[float] = None
    conditions: Optional[str] = None
    humidity: Optional[float] = None
    wind_speed: Optional[float] = None
    pressure: Optional[float] = None
    visibility: Optional[int] = None
    icon: Optional[str] = None
    sunrise: Optional[int] = None
    sunset: Optional[int] = None


class ForecastPoint(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    datetime: datetime
    date: str
    time: str
    temperature: Optional[float] = None
    feels_like: Optional[float] = None
    temp_min: Optional[float] = None
    temp_max: Optional[float] = None
    conditions: Optional[str] = None
    icon: Optional[str] = None
    humidity: Optional[float] = None
    wind_speed: Optional[float] = None
    pop: Optional[int] = None


class WeatherResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    snapshot: Optional[WeatherSnapshot] = None
    error: Optional[str] = None


class ForecastFetchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    forecast: Optional[List[ForecastPoint]] = None
    error: Optional[str] = None


class ForecastData(BaseModel):
    """
    Shape of the ``forecast_data`` JSON blob stored on each cache row.
    Rows written before forecasts were cached carry only some of these keys.
    """

    model_config = ConfigDict(extra="ignore")

    humidity: Optional[float] = None
    wind_speed: Optional[float] = None
    feels_like: Optional[float] = None
    pressure: Optional[float] = None
    visibility: Optional[int] = None
    icon: Optional[str] = None
    sunrise: Optional[int] = None
    sunset: Optional[int] = None
    forecast: Optional[List[ForecastPoint]] = None

    @classmethod
    def from_snapshot(cls, snapshot: WeatherSnapshot, forecast: Optional[List[ForecastPoint]]) -> "ForecastData":
        return cls(
            humidity=snapshot.humidity,
            wind_speed=snapshot.wind_speed,
            feels_like=snapshot.feels_like,
            pressure=snapshot.pressure,
            visibility=snapshot.visibility,
            icon=snapshot.icon,
            sunrise=snapshot.sunrise,
            sunset=snapshot.sunset,
            forecast=forecast,
        )

    @classmethod
    def from_blob(cls, blob: Optional[Dict[str, Any]]) -> "ForecastData":
        return cls.model_validate(blob or {})


class WeatherCacheBase(SQLModel):
    zip_code: str = Field(index=True)
    location: Optional[str] = None
    temperature: Optional[float] = None
    high_temp: Optional[float] = None
    low_temp: Optional[float] = None
    conditions: Optional[str] = None
    cached_at: datetime = Field(index=True)
    forecast_data: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    data_hash: str = Field(index=True)

    @field_validator("zip_code")
    @classmethod
    def validate_zip_code(cls, value: str) -> str:
        if not ZIP_CODE_RE.match(value or ""):
            raise ValueError("zip_code must be a 5-digit zip code")
        return value

    @field_validator("data_hash")
    @classmethod
    def validate_data_hash(cls, value: str) -> str:
        text = (value or "").strip()
        if not text:
            raise ValueError("data_hash must not be blank")
        return text


class WeatherCache(WeatherCacheBase, table=True):
    __tablename__ = "weather_caches"

    id: Optional[int] = Field(default=None, primary_key=True)


class WeatherCacheCreate(WeatherCacheBase):
    pass


class ForecastSuccess(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: Literal[True] = True
    from_cache: bool
    cached_at: Optional[str] = None
    weather: WeatherSnapshot
    forecast: Optional[List[ForecastPoint]] = None
    location: Optional[str] = None
    zip_code: Optional[str] = None


class ForecastFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: Literal[False] = False
    error: str


ForecastResult = Union[ForecastSuccess, ForecastFailure]
