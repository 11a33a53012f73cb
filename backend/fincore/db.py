from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from backend.fincore import config


def _build_engine(database_url: str):
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, future=True, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False}}
    # in-memory sqlite lives and dies with its connection
    if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
        kwargs["poolclass"] = StaticPool
    return create_engine(database_url, future=True, **kwargs)


DATABASE_URL = config.database_url()
engine = _build_engine(DATABASE_URL)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


class Base(DeclarativeBase):
    pass


def init_db() -> None:
    """Create the analytics and record-store tables if they are missing."""
    from backend.fincore import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_db():
    db: Session = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
