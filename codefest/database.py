# codefest/database.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.engine import URL
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import ArgumentError

load_dotenv()


def _default_db_url() -> str:
    """
    Use a file-based SQLite DB at the project root when DATABASE_URL is not provided.
    """
    root = Path(__file__).resolve().parents[1]
    return f"sqlite+aiosqlite:///{(root / 'codefest.db').as_posix()}"


def _translate_sslmode(value: str) -> Optional[str]:
    """Translate libpq sslmode values to asyncpg-compatible flags."""

    normalized = value.strip().lower()
    if normalized in {"require", "verify-ca", "verify-full"}:
        return "true"
    if normalized == "disable":
        return "false"

    # "prefer" and "allow" have no asyncpg equivalent; leave the driver default.
    return None


def _normalize_database_url(raw_url: Optional[str]) -> Optional[str]:
    """Ensure async-friendly drivers even if the URL omits them."""

    if not raw_url:
        return raw_url

    try:
        url = make_url(raw_url)
    except ArgumentError:
        return raw_url

    driver = url.drivername.lower()
    if driver in {"postgresql", "postgres"} or (
        driver.startswith("postgresql+") and driver != "postgresql+asyncpg"
    ):
        url = url.set(drivername="postgresql+asyncpg")
    elif driver == "sqlite":
        url = url.set(drivername="sqlite+aiosqlite")

    if url.drivername == "postgresql+asyncpg":
        query = dict(url.query)
        sslmode = query.pop("sslmode", None)
        if sslmode is not None:
            translated = _translate_sslmode(sslmode)
            if translated is not None:
                query["ssl"] = translated
        if query != dict(url.query):
            url = url.set(query=query)

    return url.render_as_string(hide_password=False)


def _railway_env_database_url(env: Mapping[str, str]) -> Optional[str]:
    """Construct a Postgres URL from Railway-provided PG* env vars."""

    host = env.get("PGHOST")
    database = env.get("PGDATABASE")
    user = env.get("PGUSER")

    if not (host and database and user):
        return None

    port = env.get("PGPORT")
    password = env.get("PGPASSWORD") or None

    query: dict[str, str] = {}
    sslmode = env.get("PGSSLMODE")
    if sslmode:
        translated = _translate_sslmode(sslmode)
        if translated is not None:
            query["ssl"] = translated

    try:
        port_value = int(port) if port is not None else None
    except (TypeError, ValueError):
        port_value = None

    return URL.create(
        drivername="postgresql+asyncpg",
        username=user,
        password=password,
        host=host,
        port=port_value,
        database=database,
        query=query,
    ).render_as_string(hide_password=False)


def _database_url_from_env(env: Mapping[str, str]) -> Optional[str]:
    """Resolve the preferred database URL from environment variables."""

    for raw in (env.get("DATABASE_URL"), env.get("POSTGRES_URL")):
        normalized = _normalize_database_url(raw)
        if normalized:
            return _apply_env_sslmode(normalized, env.get("PGSSLMODE"))

    return _railway_env_database_url(env)


def _apply_env_sslmode(database_url: str, sslmode: Optional[str]) -> str:
    """Apply PGSSLMODE to an asyncpg URL that does not carry its own ssl flag."""

    if not sslmode:
        return database_url
    try:
        url = make_url(database_url)
    except ArgumentError:
        return database_url
    if url.drivername != "postgresql+asyncpg" or "ssl" in url.query:
        return database_url
    translated = _translate_sslmode(sslmode)
    if translated is None:
        return database_url
    return url.update_query_dict({"ssl": translated}).render_as_string(hide_password=False)


def redact_database_url(database_url: str) -> str:
    """Return ``database_url`` with any password masked, safe for log output."""

    try:
        return make_url(database_url).render_as_string(hide_password=True)
    except ArgumentError:
        return "<unparseable database url>"


DEFAULT_SQLITE_URL: str = _default_db_url()
DATABASE_URL: str = _database_url_from_env(os.environ) or DEFAULT_SQLITE_URL

# Optional echo flag for local debugging
ECHO = os.getenv("SQLALCHEMY_ECHO", "0").lower() in {"1", "true", "yes"}


def _build_engine(database_url: str) -> AsyncEngine:
    return create_async_engine(
        database_url,
        echo=ECHO,
        pool_pre_ping=True,
    )


def build_session_factory(bind_engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(
        bind=bind_engine,
        class_=AsyncSession,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


Base = declarative_base()

# Public globals that can be reconfigured at runtime.
engine: AsyncEngine
SessionLocal: sessionmaker
CURRENT_DATABASE_URL: str


def configure_engine(database_url: str) -> None:
    """Configure the global engine/session factory pair.

    Lets startup swap databases at runtime, e.g. falling back to SQLite
    when a Postgres instance is unavailable.
    """

    global engine, SessionLocal, CURRENT_DATABASE_URL

    engine = _build_engine(database_url)
    SessionLocal = build_session_factory(engine)
    CURRENT_DATABASE_URL = database_url


configure_engine(DATABASE_URL)


async def get_db():
    """FastAPI dependency that yields an AsyncSession."""

    async with SessionLocal() as session:
        yield session


async def create_schema(bind_engine: AsyncEngine) -> None:
    """Create every mapped table on ``bind_engine`` and apply schema upgrades."""

    # Registers every mapped class with Base
    import codefest.models  # noqa: F401
    from codefest import schema_upgrades

    async with bind_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await schema_upgrades.run_post_creation_upgrades(conn)


async def init_models() -> None:
    """Create tables on the currently configured engine. Run once on startup."""

    await create_schema(engine)
