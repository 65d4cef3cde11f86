from __future__ import annotations
import logging
from typing import Callable, Optional

from fastapi import Depends, FastAPI, Form, Query, status
from fastapi.responses import JSONResponse

from forecaster.config import get_settings
from forecaster.db import create_db_and_tables
from forecaster.models import ForecastResult
from forecaster.repositories.cache import ForecastCache
from forecaster.services.forecast import ForecastOrchestrator
from forecaster.services.geo import OpenWeatherGeocoder
from forecaster.services.validators import is_blank
from forecaster.services.weather import OpenWeatherProvider

app = FastAPI(title="Forecaster")

logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)

MISSING_ADDRESS_ERROR = "Please enter an address to search for weather"
UNEXPECTED_ERROR = "An unexpected error occurred. Please try again."


@app.on_event("startup")
def on_startup():
    create_db_and_tables()


def build_orchestrator() -> ForecastOrchestrator:
    return ForecastOrchestrator(
        geocoder=OpenWeatherGeocoder(),
        provider=OpenWeatherProvider(),
        cache=ForecastCache(ttl_minutes=get_settings().cache_ttl_minutes),
    )


def get_orchestrator_factory() -> Callable[[], ForecastOrchestrator]:
    return build_orchestrator


def _wants_forecast(flag: Optional[str]) -> bool:
    # The extended forecast is on unless explicitly switched off.
    return flag != "0"


def _respond(result: ForecastResult) -> JSONResponse:
    code = status.HTTP_200_OK if result.success else status.HTTP_400_BAD_REQUEST
    return JSONResponse(result.model_dump(mode="json"), status_code=code)


def _forecast(address: Optional[str], include_forecast: Optional[str], factory) -> JSONResponse:
    if is_blank(address):
        return JSONResponse(
            {"success": False, "error": MISSING_ADDRESS_ERROR},
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    try:
        orchestrator = factory()
        result = orchestrator.get_forecast(address, include_forecast=_wants_forecast(include_forecast))
    except Exception:
        logger.exception("Weather forecast error for %r", address)
        return JSONResponse(
            {"success": False, "error": UNEXPECTED_ERROR},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    return _respond(result)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/forecast")
def forecast_query(
    address: Optional[str] = Query(None),
    include_forecast: Optional[str] = Query(None),
    factory: Callable[[], ForecastOrchestrator] = Depends(get_orchestrator_factory),
):
    """
    JSON forecast for ?address=...; pass include_forecast=0 to skip the
    extended forecast.
    """
    return _forecast(address, include_forecast, factory)


@app.post("/forecast")
def forecast_form(
    address: Optional[str] = Form(None),
    include_forecast: Optional[str] = Form(None),
    factory: Callable[[], ForecastOrchestrator] = Depends(get_orchestrator_factory),
):
    return _forecast(address, include_forecast, factory)
