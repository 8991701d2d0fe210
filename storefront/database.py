# storefront/database.py
from typing import Any

from sqlmodel import SQLModel, create_engine, Session

from storefront.core.config import get_settings

settings = get_settings()

# ---------------------------------------------------------
# Engine configuration
#
# Postgres (pooler):
# - sslmode=require   : enforce SSL when running in the cloud
# - pool_size=1       : keep only 1 connection to the pooler
# - max_overflow=0    : do not open extra connections beyond the pool
#
# SQLite (local dev / tests):
# - check_same_thread=False: FastAPI runs sync routes in a threadpool
# ---------------------------------------------------------


def _engine_options(db_url: str) -> tuple[str, dict[str, Any]]:
    """
    Return the final URL and create_engine() keyword arguments for db_url.
    """
    options: dict[str, Any] = {"echo": False, "pool_pre_ping": True}

    if db_url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
        return db_url, options

    # Append sslmode=require if it is not already present
    if db_url.startswith("postgres") and "sslmode=" not in db_url:
        if "?" in db_url:
            db_url = db_url + "&sslmode=require"
        else:
            db_url = db_url + "?sslmode=require"

    options["pool_size"] = 1
    options["max_overflow"] = 0
    return db_url, options


db_url, engine_options = _engine_options(settings.DATABASE_URL)

engine = create_engine(db_url, **engine_options)


def create_db_and_tables() -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    SQLModel.metadata.create_all(engine)


def get_session():
    """
    FastAPI dependency that yields a SQLModel Session.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    with Session(engine) as session:
        yield session
