import os
from datetime import datetime, timezone

from sqlalchemy import JSON, create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite test databases)
JSONType = JSON().with_variant(JSONB(), "postgresql")

DATABASE_URL = ""
engine = None
_configured_database_url = None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _get_database_url() -> str:
    return os.getenv("DATABASE_URL", "postgresql://localhost/bordereau_billing")


def _engine_kwargs(database_url: str) -> dict:
    if make_url(database_url).drivername.startswith("sqlite"):
        # TestClient runs handlers on a worker thread
        return {"connect_args": {"check_same_thread": False}}
    return {}


def configure_database() -> None:
    global DATABASE_URL, engine, _configured_database_url

    database_url = _get_database_url()

    if engine is not None and _configured_database_url == database_url:
        return

    engine = create_engine(database_url, **_engine_kwargs(database_url))
    SessionLocal.configure(bind=engine)
    DATABASE_URL = database_url
    _configured_database_url = database_url


configure_database()


def get_db():
    configure_database()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
