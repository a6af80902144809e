"""
Database connections: Supabase client (remote) and SQLAlchemy engine (local SQLite).
"""

from functools import lru_cache
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from supabase import create_client, Client

from studcom.config import get_settings

Base = declarative_base()


@lru_cache
def get_supabase_client() -> Client:
    """Get the Supabase client (singleton), using the anon key."""
    settings = get_settings()
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)


def create_local_engine(db_url: str) -> Engine:
    """Create an engine for the embedded database and make sure its tables exist."""
    if db_url.startswith("sqlite:///") and ":memory:" not in db_url:
        Path(db_url.removeprefix("sqlite:///")).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(db_url, connect_args={"check_same_thread": False})

    if engine.dialect.name == "sqlite":
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    # Models must be imported before create_all sees them
    import studcom.storage.models  # noqa: F401

    Base.metadata.create_all(engine)
    return engine


@lru_cache
def get_local_session_factory() -> sessionmaker:
    """Session factory bound to LOCAL_DB_URL (singleton)."""
    settings = get_settings()
    engine = create_local_engine(settings.LOCAL_DB_URL)
    return sessionmaker(bind=engine, expire_on_commit=False)
