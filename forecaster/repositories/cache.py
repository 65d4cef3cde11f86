import hashlib
import json
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from sqlmodel import Session, select

from forecaster.db import get_session
from forecaster.models import ForecastData, ForecastPoint, WeatherCache, WeatherCacheCreate, WeatherSnapshot
from forecaster.services.validators import is_blank, round_half_up

CACHE_DURATION_MINUTES = 30


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo; those were written as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ForecastCache:
    """
    Insert-only weather cache keyed by zip code.

    Rows are never updated or deleted: a newer row for the same zip
    supersedes older ones, and rows older than the TTL are ignored at
    query time.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = get_session,
        *,
        ttl_minutes: int = CACHE_DURATION_MINUTES,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._ttl = timedelta(minutes=ttl_minutes)
        self._clock = clock

    def now(self) -> datetime:
        return as_utc(self._clock())

    def find_valid(self, zip_code: str, data_hash: Optional[str] = None) -> Optional[WeatherCache]:
        """
        Newest unexpired row for ``zip_code``. With ``data_hash``, only a row
        whose fingerprint matches counts, i.e. "nothing has changed".
        """
        cutoff = self.now() - self._ttl
        stmt = (
            select(WeatherCache)
            .where(WeatherCache.zip_code == zip_code)
            .where(WeatherCache.cached_at > cutoff)
            .order_by(WeatherCache.cached_at.desc())
        )
        if not is_blank(data_hash):
            stmt = stmt.where(WeatherCache.data_hash == data_hash)

        with self._session_factory() as session:
            return session.exec(stmt.limit(1)).first()

    def store(
        self,
        zip_code: str,
        location: Optional[str],
        snapshot: WeatherSnapshot,
        forecast: Optional[List[ForecastPoint]] = None,
    ) -> WeatherCache:
        # Raises pydantic.ValidationError for a malformed zip code.
        data = WeatherCacheCreate(
            zip_code=zip_code,
            location=location,
            temperature=snapshot.temperature,
            high_temp=snapshot.high_temp,
            low_temp=snapshot.low_temp,
            conditions=snapshot.conditions,
            cached_at=self.now(),
            forecast_data=ForecastData.from_snapshot(snapshot, forecast).model_dump(mode="json"),
            data_hash=self.fingerprint(snapshot, forecast, include_forecast=bool(forecast)),
        )
        row = WeatherCache.model_validate(data)

        with self._session_factory() as session:
            session.add(row)
            session.commit()
            session.refresh(row)
        return row

    @staticmethod
    def fingerprint(
        snapshot: WeatherSnapshot,
        forecast: Optional[List[ForecastPoint]] = None,
        include_forecast: bool = True,
    ) -> str:
        key_data = {
            "temp": round_half_up(snapshot.temperature),
            "high": round_half_up(snapshot.high_temp),
            "low": round_half_up(snapshot.low_temp),
            "conditions": snapshot.conditions,
        }
        if include_forecast and forecast is not None:
            key_data["forecast"] = [
                {
                    "date": point.date,
                    "high": round_half_up(point.temp_max),
                    "low": round_half_up(point.temp_min),
                    "conditions": point.conditions,
                }
                for point in forecast
            ]

        payload = json.dumps(key_data, sort_keys=True, separators=(",", ":"))
        return hashlib.md5(payload.encode("utf-8")).hexdigest()

    def is_fresh(self, entry: WeatherCache) -> bool:
        return as_utc(entry.cached_at) > self.now() - self._ttl

    def status_label(self, entry: WeatherCache) -> str:
        if not self.is_fresh(entry):
            return "Cache expired"

        elapsed = (self.now() - as_utc(entry.cached_at)).total_seconds()
        minutes = int(round_half_up(elapsed / 60, 0))
        unit = "minute" if minutes == 1 else "minutes"
        return f"Cached {minutes} {unit} ago"
