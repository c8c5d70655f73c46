"""Worker that persists notification records and pushes outbound tasks."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from redis.exceptions import ResponseError

from newsflash.domain.notifications.dispatcher import DispatchResult, NotificationDispatcher
from newsflash.domain.notifications.outbox import OutboundNotification
from newsflash.domain.notifications.service import NotificationService
from newsflash.infra.redis import redis_client
from newsflash.obs import logging as obs_logging
from newsflash.settings import settings

_LOG = logging.getLogger(__name__)


class DispatchWorker:
	"""Consumes the outbound stream through a consumer group.

	Entries are acknowledged once handled, so a restarted worker resumes after
	the last acknowledged entry. Entries this consumer read but never
	acknowledged are replayed first. A failing task is logged and skipped.
	"""

	def __init__(
		self,
		*,
		notifications: NotificationService,
		dispatcher: NotificationDispatcher,
		stream: Optional[str] = None,
		group: Optional[str] = None,
		consumer: Optional[str] = None,
		poll_interval: float = 0.5,
		batch_size: Optional[int] = None,
		block_ms: Optional[int] = 1000,
	) -> None:
		self.notifications = notifications
		self.dispatcher = dispatcher
		self.stream = stream or settings.outbox_stream
		self.group = group or settings.outbox_group
		self.consumer = consumer or settings.outbox_consumer
		self.poll_interval = poll_interval
		self.batch_size = batch_size or settings.dispatch_batch_size
		self.block_ms = block_ms
		self._running = False
		self._group_ready = False
		self._backlog = True

	async def run_forever(self) -> None:
		self._running = True
		while self._running:
			try:
				processed = await self.process_once()
			except asyncio.CancelledError:
				raise
			except Exception:
				_LOG.exception("dispatch_worker.read_failed", extra={"stream": self.stream})
				processed = 0
			if processed == 0:
				await asyncio.sleep(self.poll_interval)

	def stop(self) -> None:
		self._running = False

	async def _ensure_group(self) -> None:
		if self._group_ready:
			return
		try:
			await redis_client.xgroup_create(self.stream, self.group, id="0", mkstream=True)
		except ResponseError as exc:
			if "BUSYGROUP" not in str(exc):
				raise
		self._group_ready = True

	async def _read(self) -> list[Any]:
		if self._backlog:
			pending = await redis_client.xreadgroup(
				self.group,
				self.consumer,
				{self.stream: "0"},
				count=self.batch_size,
			)
			if any(entries for _stream_name, entries in pending or []):
				return pending
			self._backlog = False
		messages = await redis_client.xreadgroup(
			self.group,
			self.consumer,
			{self.stream: ">"},
			count=self.batch_size,
			block=self.block_ms,
		)
		return messages or []

	async def process_once(self) -> int:
		await self._ensure_group()
		processed = 0
		for _stream_name, entries in await self._read():
			for entry_id, payload in entries:
				await self._handle(dict(payload))
				await redis_client.xack(self.stream, self.group, entry_id)
				processed += 1
		return processed

	async def _handle(self, payload: Dict[str, str]) -> Optional[DispatchResult]:
		with obs_logging.log_context(notification_type=payload.get("type")):
			return await self._deliver(payload)

	async def _deliver(self, payload: Dict[str, str]) -> Optional[DispatchResult]:
		try:
			task = OutboundNotification.from_fields(payload)
			await self.notifications.record(task)
			if not task.tokens:
				return None
			return await self.dispatcher.dispatch(
				task.tokens,
				task.title,
				task.body,
				task.data,
				{"channel_id": task.channel_id, "priority": task.priority},
			)
		except Exception:
			_LOG.exception("dispatch_worker.handle_failed", extra={"type": payload.get("type")})
			return None
