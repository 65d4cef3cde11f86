from sqlmodel import SQLModel, create_engine, Session

from forecaster import models  # noqa: F401  registers the tables
from forecaster.config import get_settings


def _build_engine(url: str, echo: bool = False):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=echo, connect_args=connect_args)


_settings = get_settings()
engine = _build_engine(_settings.database_url, echo=_settings.database_echo)


def create_db_and_tables(bind=None):
    SQLModel.metadata.create_all(bind or engine)


def get_session():
    return Session(engine)
