"""Redis stream outbox for notification tasks emitted after a mutation commits."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from pydantic import BaseModel, Field

from newsflash.domain.models import utcnow
from newsflash.infra.redis import redis_client
from newsflash.obs import metrics as obs_metrics
from newsflash.settings import settings

_LOG = logging.getLogger(__name__)


class OutboundNotification(BaseModel):
	"""One fan-out task: persisted per recipient user, pushed to every token."""

	type: str
	title: str
	body: str
	data: dict[str, Any] = Field(default_factory=dict)
	user_ids: list[str] = Field(default_factory=list)
	tokens: list[str] = Field(default_factory=list)
	channel_id: str = "default"
	priority: str = "high"

	def to_fields(self) -> dict[str, str]:
		return {
			"type": self.type,
			"title": self.title,
			"body": self.body,
			"data": json.dumps(self.data, default=str),
			"user_ids": ",".join(self.user_ids),
			"tokens": ",".join(self.tokens),
			"channel_id": self.channel_id,
			"priority": self.priority,
			"ts": utcnow().isoformat(),
		}

	@classmethod
	def from_fields(cls, fields: dict[str, str]) -> "OutboundNotification":
		data_raw = fields.get("data")
		if data_raw:
			try:
				data = json.loads(data_raw)
			except json.JSONDecodeError:
				data = {"raw": data_raw}
		else:
			data = {}
		return cls(
			type=fields.get("type") or "unknown",
			title=fields.get("title") or "",
			body=fields.get("body") or "",
			data=data,
			user_ids=[item for item in (fields.get("user_ids") or "").split(",") if item],
			tokens=[item for item in (fields.get("tokens") or "").split(",") if item],
			channel_id=fields.get("channel_id") or "default",
			priority=fields.get("priority") or "high",
		)


class Outbox:
	"""Appends tasks to the outbound stream; publishing never fails the caller."""

	def __init__(self, stream: Optional[str] = None) -> None:
		self.stream = stream or settings.outbox_stream

	async def publish(self, task: OutboundNotification) -> Optional[str]:
		if not task.user_ids and not task.tokens:
			return None
		try:
			entry_id = await redis_client.xadd(
				self.stream,
				task.to_fields(),
				maxlen=settings.outbox_maxlen,
				approximate=True,
			)
		except Exception:
			_LOG.exception("outbox.publish_failed", extra={"type": task.type, "stream": self.stream})
			obs_metrics.outbox_publish_failure(task.type)
			return None
		obs_metrics.outbox_published(task.type)
		return entry_id
