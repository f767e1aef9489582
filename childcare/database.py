# childcare/database.py
from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from childcare.core.config import Settings


def _with_sslmode(db_url: str) -> str:
    """Append sslmode=require to a Postgres URL if it is not already present."""
    if "sslmode=" in db_url:
        return db_url
    separator = "&" if "?" in db_url else "?"
    return f"{db_url}{separator}sslmode=require"


def create_engine_from_settings(settings: Settings) -> Engine:
    """
    Build the SQLAlchemy engine for DATABASE_URL.

    Postgres (Supabase pooler):
      - sslmode=require   : enforce SSL when running in the cloud
      - pool_size=1       : keep only 1 connection to the pooler
      - max_overflow=0    : do not open extra connections beyond the pool
      - pool_pre_ping=True: validate connections before using them

    SQLite (local development, tests):
      - check_same_thread=False so FastAPI's threadpool and the deletion
        sweeper can share the engine
      - in-memory URLs use StaticPool, otherwise every connection would
        see its own empty database
    """
    db_url = settings.DATABASE_URL

    if db_url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in db_url or db_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        return create_engine(db_url, echo=False, **kwargs)

    if db_url.startswith("postgres"):
        db_url = _with_sslmode(db_url)

    return create_engine(
        db_url,
        echo=False,        # set to True if you want to debug SQL queries
        pool_pre_ping=True,
        pool_size=1,
        max_overflow=0,
    )


def create_db_and_tables(engine: Engine) -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    # Import models so SQLModel metadata is populated before create_all()
    from childcare.models import event as _event_models  # noqa: F401
    from childcare.models import user as _user_models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session(request: Request):
    """
    FastAPI dependency that yields a SQLModel Session bound to the
    application's engine (app.state.engine).

    Usage:

        from fastapi import Depends

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    with Session(request.app.state.engine) as session:
        yield session
