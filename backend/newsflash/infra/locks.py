"""Per-entity asyncio locks serialising read-modify-write cycles."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class KeyedLock:
	"""Hands out one ``asyncio.Lock`` per entity key.

	Multiple keys are acquired in sorted order so two operations touching the
	same pair of users cannot deadlock each other. A key's lock is dropped once
	no holder or waiter references it.
	"""

	def __init__(self) -> None:
		self._locks: dict[str, asyncio.Lock] = {}
		self._refs: dict[str, int] = {}

	def __len__(self) -> int:
		return len(self._locks)

	def _checkout(self, key: str) -> asyncio.Lock:
		lock = self._locks.get(key)
		if lock is None:
			lock = self._locks[key] = asyncio.Lock()
		self._refs[key] = self._refs.get(key, 0) + 1
		return lock

	def _checkin(self, key: str) -> None:
		remaining = self._refs[key] - 1
		if remaining:
			self._refs[key] = remaining
			return
		del self._refs[key]
		del self._locks[key]

	@asynccontextmanager
	async def hold(self, *keys: str) -> AsyncIterator[None]:
		referenced: list[str] = []
		acquired: list[asyncio.Lock] = []
		try:
			for key in sorted(set(keys)):
				lock = self._checkout(key)
				referenced.append(key)
				await lock.acquire()
				acquired.append(lock)
			yield
		finally:
			for lock in reversed(acquired):
				lock.release()
			for key in referenced:
				self._checkin(key)
