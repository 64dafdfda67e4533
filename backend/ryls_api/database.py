"""
Database Engine & Session Management
SQLAlchemy setup with dependency injection for FastAPI.
"""
import os

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from ryls_api.config import get_settings

settings = get_settings()


def build_engine(url: str, echo: bool = False):
    """Create an engine, handling the SQLite file and in-memory variants."""
    kwargs = {"echo": echo}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}  # Required for SQLite
        db_path = url.replace("sqlite:///", "", 1) if url.startswith("sqlite:///") else ""
        if db_path and db_path != ":memory:":
            os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        else:
            # One shared connection so every session sees the same in-memory database
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: yields a database session, auto-closes on finish."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Create all tables. Called once at application startup."""
    from ryls_api.models import registration as _registration_model  # noqa: F401
    from ryls_api.models import file_asset as _file_asset_model      # noqa: F401
    from ryls_api.models import payment as _payment_model            # noqa: F401
    from ryls_api.models import audit as _audit_model                # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
