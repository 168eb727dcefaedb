from dataclasses import dataclass
from threading import Lock
from typing import Any, Optional

import structlog
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from app.shared.core.config import Settings, get_settings
from app.shared.db.base import Base

logger = structlog.get_logger()

# Ensure ORM mappings are registered before metadata is used
import app.models  # noqa: F401, E402


@dataclass
class _DBRuntime:
    engine: AsyncEngine
    session_maker: async_sessionmaker[AsyncSession]
    effective_url: str


_db_runtime: Optional[_DBRuntime] = None
_db_runtime_lock = Lock()


def _resolve_effective_url(settings_obj: Settings) -> str:
    db_url = (settings_obj.DATABASE_URL or "").strip()
    if settings_obj.TESTING and "sqlite" not in db_url:
        # Tests never write to a real database.
        return "sqlite+aiosqlite:///:memory:"
    if not db_url:
        raise ValueError("DATABASE_URL is not set. The audit store cannot start.")
    return db_url


def build_engine(settings_obj: Optional[Settings] = None) -> AsyncEngine:
    settings_obj = settings_obj or get_settings()
    effective_url = _resolve_effective_url(settings_obj)
    engine_kwargs: dict[str, Any] = {"pool_pre_ping": True}
    if effective_url.endswith(":memory:"):
        # One shared connection so every session sees the same in-memory database.
        engine_kwargs["poolclass"] = StaticPool
    logger.info("database_engine_created", dialect=effective_url.split(":", 1)[0])
    return create_async_engine(effective_url, **engine_kwargs)


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def _get_runtime() -> _DBRuntime:
    global _db_runtime
    if _db_runtime is None:
        with _db_runtime_lock:
            if _db_runtime is None:
                settings_obj = get_settings()
                engine = build_engine(settings_obj)
                _db_runtime = _DBRuntime(
                    engine=engine,
                    session_maker=build_session_maker(engine),
                    effective_url=str(engine.url),
                )
    return _db_runtime


def get_engine() -> AsyncEngine:
    return _get_runtime().engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    return _get_runtime().session_maker


async def init_db(engine: Optional[AsyncEngine] = None) -> None:
    """Create missing tables. The audit store has no migrations."""
    target = engine or get_engine()
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    global _db_runtime
    with _db_runtime_lock:
        runtime, _db_runtime = _db_runtime, None
    if runtime is not None:
        await runtime.engine.dispose()
