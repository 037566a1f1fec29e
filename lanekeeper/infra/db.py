from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from lanekeeper.config import SETTINGS


def make_engine(url: str) -> Engine:
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


engine = make_engine(SETTINGS.database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False)
Base = declarative_base()


def init_db(bind: Engine | None = None) -> None:
    from . import models  # noqa: F401  registers tables on Base

    bind = bind or engine
    Base.metadata.create_all(bind)
    with bind.connect() as connection:
        connection.execute(text("SELECT 1"))
