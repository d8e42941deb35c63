import asyncio
import logging
import os
from dotenv import load_dotenv  # load .env variables

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sqlalchemy.exc import DBAPIError, OperationalError

import codefest.database as database
from codefest.header_util import alert_header_names
from codefest.services.competition_service import CompetitionService
from codefest.services.search import get_search_index

# ----- Load environment variables -----
load_dotenv()

# ----- Logging -----
logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)
logger = logging.getLogger("codefest")

# ----- Routers -----
from codefest.routes.competition import router as competition_router  # noqa: E402

# ----- FastAPI app -----
app = FastAPI(
    title="CodeFest Competitions API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# ----- CORS (enabled only if ALLOWED_ORIGINS is set) -----
def configure_cors(target: FastAPI, raw_origins: str) -> None:
    allowed_origins = [o.strip() for o in raw_origins.split(",") if o.strip()]
    if not allowed_origins:
        return
    target.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization", "Content-Type", "Accept", "Origin", "X-Requested-With"
        ],
        # The web client reads alert and paging headers
        expose_headers=["Location", "Link", "X-Total-Count", *alert_header_names()],
        max_age=86400,
    )


configure_cors(app, os.getenv("ALLOWED_ORIGINS", ""))

# ----- Include routers -----
app.include_router(competition_router)


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes", "on"}


def sqlite_fallback_allowed() -> bool:
    """Decide if we may fall back to the bundled SQLite database."""

    configured = os.getenv("DB_ALLOW_SQLITE_FALLBACK")
    if configured is not None:
        return configured.lower() in {"1", "true", "yes", "on"}

    # Only when already on the bundled SQLite database; a misconfigured
    # deployment should fail fast instead.
    return database.CURRENT_DATABASE_URL == database.DEFAULT_SQLITE_URL


async def _reindex_search() -> None:
    async with database.SessionLocal() as session:
        indexed = await CompetitionService(session, get_search_index()).reindex()
    logger.info("Search index rebuilt with %s competitions.", indexed)


@app.on_event("startup")
async def on_startup():
    """Ensure database connectivity with simple retry logic."""

    logger.info("Using DB: %s", database.redact_database_url(database.CURRENT_DATABASE_URL))

    max_attempts = int(os.getenv("DB_INIT_MAX_ATTEMPTS", "10"))
    base_delay = float(os.getenv("DB_INIT_RETRY_SECONDS", "1.0"))

    attempt = 0
    while True:
        attempt += 1
        try:
            await database.init_models()
        except (OperationalError, DBAPIError, OSError) as exc:  # pragma: no cover - depends on timing
            if attempt >= max_attempts:
                if sqlite_fallback_allowed() and (
                    database.CURRENT_DATABASE_URL != database.DEFAULT_SQLITE_URL
                ):
                    logger.error(
                        "Database not reachable at %s after %s attempts: %s."
                        " Falling back to local SQLite for development.",
                        database.redact_database_url(database.CURRENT_DATABASE_URL),
                        attempt,
                        exc,
                    )
                    await database.engine.dispose()
                    database.configure_engine(database.DEFAULT_SQLITE_URL)
                    attempt = 0
                    continue

                logger.exception("Database not reachable after %s attempts", attempt)
                raise

            wait_time = base_delay * min(2 ** (attempt - 1), 8)
            logger.warning(
                "Database not ready (attempt %s/%s): %s. Retrying in %.1f seconds...",
                attempt,
                max_attempts,
                exc,
                wait_time,
            )
            await asyncio.sleep(wait_time)
        else:
            logger.info(
                "CodeFest API started and database tables ensured (using %s).",
                database.redact_database_url(database.CURRENT_DATABASE_URL),
            )
            break

    # The in-memory index starts empty on every boot.
    if get_search_index().backend_name == "memory" or _env_flag("SEARCH_REINDEX_ON_STARTUP"):
        await _reindex_search()


# ----- Health check endpoint -----
@app.get("/health", tags=["meta"])
async def health():
    return {"ok": True}


# ----- Shutdown: release pooled connections -----
@app.on_event("shutdown")
async def on_shutdown():
    await database.engine.dispose()
