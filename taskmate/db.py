from __future__ import annotations

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from taskmate.config import settings
from taskmate.models import Base

engine = create_async_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False)


async def init_models() -> None:
  # Development shortcut; deployments run `alembic upgrade head`.
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.create_all)


async def drop_models() -> None:
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.drop_all)
