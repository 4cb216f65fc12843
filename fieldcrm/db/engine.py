"""Database engine and sessions (SQLAlchemy 2.0 async over asyncpg).

An API request runs in exactly one transaction. Scheduling depends on it:
the per-assignee advisory lock taken before the conflict check is held until
``get_session`` commits or rolls back.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator, AsyncIterator, Callable, Coroutine
from typing import Any

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session

from fieldcrm.config import settings

logger = logging.getLogger(__name__)

AfterCommitCallback = Callable[[], Coroutine[Any, Any, None]]

# ── Engine / session factory ─────────────────────────────────────────

engine: AsyncEngine = create_async_engine(
    settings.db.database_url,
    echo=settings.db.echo_sql,
    pool_size=settings.db.pool_size,
    max_overflow=settings.db.max_overflow,
    pool_recycle=settings.db.pool_recycle,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session, one transaction per request."""
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        else:
            await session.commit()


@contextlib.asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Unit of work outside a request (event subscribers, scripts).

    Commits when the block exits cleanly, rolls back otherwise.
    """
    async with async_session_factory() as session, session.begin():
        yield session


# ── Post-commit work ─────────────────────────────────────────────────

# Strong references so running tasks are not garbage collected
_background_tasks: set[asyncio.Task[None]] = set()


def run_after_commit(session: AsyncSession, callback: AfterCommitCallback) -> None:
    """Start ``callback()`` as a background task once ``session`` commits.

    The caller never waits for it. If the session rolls back or closes
    without committing, the callback never runs.
    """

    def _spawn(_session: Session) -> None:
        task = asyncio.get_running_loop().create_task(callback())
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)

    event.listen(session.sync_session, "after_commit", _spawn, once=True)


async def wait_for_background_tasks() -> None:
    """Wait for every post-commit task started so far (shutdown, tests)."""
    if _background_tasks:
        logger.info("Waiting for %d post-commit task(s)", len(_background_tasks))
        await asyncio.gather(*_background_tasks, return_exceptions=True)


# ── Lifespan ─────────────────────────────────────────────────────────


async def init_db() -> None:
    """Check connectivity; outside production also create missing tables.

    Production schemas are owned by Alembic (``alembic upgrade head``).
    """
    from fieldcrm.models import Base

    async with engine.begin() as conn:
        if settings.is_production:
            await conn.execute(text("SELECT 1"))
        else:
            await conn.run_sync(Base.metadata.create_all)


@contextlib.asynccontextmanager
async def db_lifespan() -> AsyncIterator[None]:
    """Open the pool at startup, dispose it at shutdown."""
    await init_db()
    try:
        yield
    finally:
        await wait_for_background_tasks()
        await engine.dispose()
