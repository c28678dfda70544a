from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from .config import get_settings

Base = declarative_base()


def make_engine(url: str):
    kwargs = {"future": True, "pool_pre_ping": True}
    if url.startswith("sqlite"):
        # sync endpoints run in a thread pool
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


def make_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


settings = get_settings()
engine = make_engine(settings.DATABASE_URL)
SessionLocal = make_session_factory(engine)


def init_db(bind=None):
    from .models_db import StudentPrediction, StudentTrend, ModelVersion  # noqa
    Base.metadata.create_all(bind=bind or engine)
