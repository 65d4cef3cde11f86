from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

import httpx
import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, select

from forecaster.config import Settings
from forecaster.models import (
    ForecastFetchResult,
    ForecastPoint,
    GeocodeResult,
    WeatherCache,
    WeatherResult,
    WeatherSnapshot,
)
from forecaster.repositories.cache import ForecastCache

NOW = datetime(2025, 10, 17, 18, 0, 0, tzinfo=timezone.utc)
BASE_URL = "http://owm.test"


class FixedClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeGeocoder:
    def __init__(self, result: Optional[GeocodeResult] = None, error: Optional[Exception] = None):
        self.result = result or GeocodeResult.found(40.7128, -74.0060, "10001", "New York, US")
        self.error = error
        self.calls: List[str] = []

    def geocode(self, address):
        self.calls.append(address)
        if self.error:
            raise self.error
        return self.result


class FakeWeatherProvider:
    def __init__(
        self,
        current: Optional[WeatherResult] = None,
        forecast: Optional[ForecastFetchResult] = None,
    ):
        self.current = current or WeatherResult(success=True, snapshot=sample_snapshot())
        self.forecast = forecast or ForecastFetchResult(success=True, forecast=[sample_point()])
        self.current_calls: List[tuple] = []
        self.forecast_calls: List[tuple] = []

    def fetch_current(self, lat, lon):
        self.current_calls.append((lat, lon))
        return self.current

    def fetch_forecast(self, lat, lon):
        self.forecast_calls.append((lat, lon))
        return self.forecast


class RecordingTransport(httpx.MockTransport):
    """
    Routes requests by URL path. A route is either ``(status, json)`` or a
    callable taking the request and returning an ``httpx.Response``.
    """

    def __init__(self, routes: Dict[str, object]):
        self.routes = routes
        self.requests: List[httpx.Request] = []
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"message": "not routed"})
        if callable(route):
            return route(request)
        status_code, payload = route
        return httpx.Response(status_code, json=payload)

    @property
    def paths(self) -> List[str]:
        return [r.url.path for r in self.requests]


def sample_snapshot(**overrides) -> WeatherSnapshot:
    data = dict(
        temperature=72.5,
        feels_like=70.0,
        high_temp=75.0,
        low_temp=68.0,
        conditions="Clear Sky",
        humidity=65,
        wind_speed=5.2,
        pressure=1013,
        visibility=10000,
        icon="01d",
        sunrise=1697540400,
        sunset=1697581200,
    )
    data.update(overrides)
    return WeatherSnapshot(**data)


def sample_point(**overrides) -> ForecastPoint:
    data = dict(
        datetime=datetime(2025, 10, 17, 15, 0, 0),
        date="2025-10-17",
        time="03:00 PM",
        temperature=75.0,
        feels_like=74.1,
        temp_min=71.2,
        temp_max=76.8,
        conditions="Clear Sky",
        icon="01d",
        humidity=60,
        wind_speed=4.0,
        pop=10,
    )
    data.update(overrides)
    return ForecastPoint(**data)


@pytest.fixture
def settings(monkeypatch) -> Settings:
    monkeypatch.delenv("OPENWEATHER_API_KEY", raising=False)
    monkeypatch.delenv("FORECASTER_OPENWEATHER_API_KEY", raising=False)
    return Settings(_env_file=None, openweather_base_url=BASE_URL)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def cache(engine, clock) -> ForecastCache:
    return ForecastCache(lambda: Session(engine), clock=clock)


@pytest.fixture
def make_entry(engine, clock) -> Callable[..., WeatherCache]:
    def _make(zip_code="10001", minutes_ago=10.0, data_hash="test_hash_123", forecast_data=None, **fields):
        row = WeatherCache(
            zip_code=zip_code,
            location=fields.pop("location", "New York, US"),
            temperature=fields.pop("temperature", 70.0),
            high_temp=fields.pop("high_temp", 73.0),
            low_temp=fields.pop("low_temp", 66.0),
            conditions=fields.pop("conditions", "Cloudy"),
            cached_at=clock() - timedelta(minutes=minutes_ago),
            data_hash=data_hash,
            forecast_data=forecast_data,
        )
        with Session(engine) as session:
            session.add(row)
            session.commit()
            session.refresh(row)
        return row

    return _make


@pytest.fixture
def count_entries(engine) -> Callable[..., int]:
    def _count(zip_code: Optional[str] = None) -> int:
        stmt = select(WeatherCache)
        if zip_code:
            stmt = stmt.where(WeatherCache.zip_code == zip_code)
        with Session(engine) as session:
            return len(session.exec(stmt).all())

    return _count


@pytest.fixture
def all_entries(engine) -> Callable[[], List[WeatherCache]]:
    def _all() -> List[WeatherCache]:
        with Session(engine) as session:
            return session.exec(select(WeatherCache).order_by(WeatherCache.id)).all()

    return _all


@pytest.fixture
def geocoder() -> FakeGeocoder:
    return FakeGeocoder()


@pytest.fixture
def provider() -> FakeWeatherProvider:
    return FakeWeatherProvider()
