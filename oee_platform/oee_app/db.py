import os
from dataclasses import dataclass

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


@dataclass
class DBConfig:
    url: str
    sqlite_timeout_sec: float = 30.0


def load_db_config() -> DBConfig:
    url = os.environ.get("DATABASE_URL", "sqlite:///./oee.sqlite")
    timeout = float(os.environ.get("SQLITE_TIMEOUT_SEC", "30"))
    return DBConfig(url=url, sqlite_timeout_sec=timeout)


def build_engine(config: DBConfig):
    kwargs = {}
    if config.url.startswith("sqlite"):
        kwargs["connect_args"] = {
            "check_same_thread": False,
            "timeout": config.sqlite_timeout_sec,
        }
        # every thread must see the same in-memory database
        if ":memory:" in config.url or config.url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
    return create_engine(config.url, **kwargs)


def build_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
