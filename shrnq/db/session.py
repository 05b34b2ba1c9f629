# shrnq/db/session.py
import logging
from collections.abc import AsyncGenerator

from fastapi import FastAPI, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from shrnq.core.config import Settings
from shrnq.db import base  # noqa: F401  (registers all models on Base.metadata)
from shrnq.db.base_class import Base

logger = logging.getLogger(__name__)


def create_db_resources(
    settings: Settings,
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Build the async engine and session factory for the configured DATABASE_URL."""
    db_url = settings.DATABASE_URL
    if not db_url:
        raise ValueError("DATABASE_URL is empty.")

    engine_kwargs: dict = {"echo": settings.DB_ECHO}
    if not db_url.startswith("sqlite"):
        engine_kwargs["pool_pre_ping"] = True

    engine = create_async_engine(db_url, **engine_kwargs)
    session_factory = async_sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        class_=AsyncSession,
    )
    logger.info(
        "Database engine (%s) and session maker configured.",
        engine.url.render_as_string(hide_password=True),
    )
    return engine, session_factory


async def get_async_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    session_factory: async_sessionmaker[AsyncSession] | None = getattr(
        request.app.state, "session_factory", None
    )
    if session_factory is None:
        logger.critical("Session factory is not initialized.")
        raise RuntimeError(
            "Session factory is not initialized. Ensure DB resources are initialized via lifespan."
        )
    async with session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            logger.error("Async DB session rolled back due to an exception.", exc_info=True)
            raise


# --- FastAPI Lifespan Event Handler Integration ---
async def lifespan_db_manager(app: FastAPI, event_type: str) -> None:
    lifespan_logger = logging.getLogger("shrnq.db.lifespan")
    settings: Settings = app.state.settings

    if event_type == "startup":
        lifespan_logger.info("Startup: initializing DB resources.")
        engine, session_factory = create_db_resources(settings)
        try:
            async with engine.begin() as connection:
                await connection.execute(text("SELECT 1"))
                if settings.DB_CREATE_ALL:
                    await connection.run_sync(Base.metadata.create_all)
            lifespan_logger.info("Startup: database connection successful.")
        except Exception as e:
            lifespan_logger.error("Startup: database connection test failed: %s", e, exc_info=True)
            await engine.dispose()
            raise RuntimeError(f"Database connection test failed on startup: {e}") from e
        app.state.db_engine = engine
        app.state.session_factory = session_factory

    elif event_type == "shutdown":
        current_engine: AsyncEngine | None = getattr(app.state, "db_engine", None)
        if current_engine is not None:
            lifespan_logger.info("Shutdown: disposing database engine.")
            await current_engine.dispose()
        app.state.db_engine = None
        app.state.session_factory = None
