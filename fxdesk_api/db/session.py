from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional, Union
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .config import get_settings


_ENGINE: AsyncEngine | None = None
_SESSION_MAKER: async_sessionmaker[AsyncSession] | None = None


def _ensure_engine_initialized() -> None:
    """Lazily initialize the AsyncEngine and session maker on first use."""
    global _ENGINE, _SESSION_MAKER
    if _ENGINE is None:
        settings = get_settings()
        _ENGINE = create_async_engine(
            settings.async_database_url,
            echo=settings.SQL_ECHO,
            pool_size=settings.DB_POOL_SIZE,
            pool_pre_ping=True,
        )
    if _SESSION_MAKER is None:
        _SESSION_MAKER = async_sessionmaker(
            bind=_ENGINE, expire_on_commit=False, autoflush=False, autocommit=False
        )


# PUBLIC_INTERFACE
def get_engine() -> AsyncEngine:
    """Return the global AsyncEngine instance."""
    _ensure_engine_initialized()
    assert _ENGINE is not None
    return _ENGINE


# PUBLIC_INTERFACE
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield an AsyncSession suitable for FastAPI dependency injection.
    Ensures engine/session factory is initialized.
    """
    _ensure_engine_initialized()
    assert _SESSION_MAKER is not None
    async with _SESSION_MAKER() as session:
        yield session


# PUBLIC_INTERFACE
@asynccontextmanager
async def session_scope(
    tenant_id: Optional[Union[str, UUID]] = None,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Open a standalone session outside of request handling (seeding, websockets).

    When tenant_id is given the session runs inside tenant_context.
    """
    _ensure_engine_initialized()
    assert _SESSION_MAKER is not None
    async with _SESSION_MAKER() as session:
        if tenant_id is None:
            yield session
        else:
            async with tenant_context(session, tenant_id):
                yield session


# PUBLIC_INTERFACE
async def set_current_tenant(
    session: AsyncSession, tenant_id: Union[str, UUID]
) -> None:
    """
    Set the current organization for the DB session using the `app.tenant_id` GUC.

    Row-Level Security policies compare tenant_id against
      current_setting('app.tenant_id', true)
    """
    await session.execute(
        text("SELECT set_config('app.tenant_id', :tenant_id, false);"),
        {"tenant_id": str(tenant_id)},
    )


# PUBLIC_INTERFACE
@asynccontextmanager
async def tenant_context(
    session: AsyncSession, tenant_id: Union[str, UUID]
) -> AsyncGenerator[AsyncSession, None]:
    """
    Async context manager that sets and resets the tenant on the session.

    Usage:
        async with tenant_context(session, org_id):
            ...  # queries are filtered by RLS
    """
    await set_current_tenant(session, tenant_id)
    try:
        yield session
    finally:
        await reset_current_tenant(session)


# PUBLIC_INTERFACE
async def reset_current_tenant(session: AsyncSession) -> None:
    """Clear the `app.tenant_id` GUC; an empty string matches no tenant row."""
    await session.execute(text("SELECT set_config('app.tenant_id', '', false);"))
