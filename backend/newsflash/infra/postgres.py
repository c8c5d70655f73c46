"""Process-wide asyncpg pool used by the postgres gateway."""

from __future__ import annotations

import logging
from typing import Optional

import asyncpg

from newsflash.settings import settings

_LOG = logging.getLogger(__name__)

_pool: Optional[asyncpg.pool.Pool] = None


async def init_pool(dsn: Optional[str] = None) -> asyncpg.pool.Pool:
	"""Open the pool once; later calls return the existing one."""
	global _pool
	if _pool is None:
		_pool = await asyncpg.create_pool(
			dsn=dsn or settings.postgres_url,
			min_size=settings.postgres_min_pool_size,
			max_size=settings.postgres_max_pool_size,
		)
		_LOG.info("postgres.pool_opened", extra={"max_size": settings.postgres_max_pool_size})
	return _pool


async def get_pool() -> asyncpg.pool.Pool:
	return _pool if _pool is not None else await init_pool()


async def close_pool() -> None:
	global _pool
	pool, _pool = _pool, None
	if pool is not None:
		await pool.close()
		_LOG.info("postgres.pool_closed")
