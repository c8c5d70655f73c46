"""Redis client holder for the notification outbox.

``redis_client`` is a proxy bound once at import time; tests rebind the
underlying client to fakeredis without touching modules that imported it.
"""

from __future__ import annotations

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from newsflash.settings import settings

_LOG = logging.getLogger(__name__)


class RedisProxy:
	"""Forwards attribute access to whichever client is currently bound."""

	def __init__(self, client: redis.Redis):
		self._client: redis.Redis = client

	def set_client(self, client: redis.Redis) -> None:
		self._client = client

	@property
	def client(self) -> redis.Redis:
		return self._client

	def __getattr__(self, item):
		return getattr(self._client, item)


redis_client: RedisProxy = RedisProxy(redis.from_url(settings.redis_url, decode_responses=True))


def set_redis_client(client: redis.Redis) -> None:
	redis_client.set_client(client)


def get_redis_client() -> redis.Redis:
	return redis_client.client


async def outbox_status() -> str:
	"""``ok`` when redis answers, ``unavailable`` otherwise; feeds the health check."""
	try:
		await redis_client.ping()
	except (RedisError, OSError):
		_LOG.warning("redis.unavailable", extra={"stream": settings.outbox_stream})
		return "unavailable"
	return "ok"
