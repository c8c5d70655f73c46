"""Stored notification records: persistence from fan-out tasks and read-side queries."""

from __future__ import annotations

from collections import Counter
from typing import Iterable

from newsflash.domain import ids
from newsflash.domain.errors import NotFoundError, ValidationError
from newsflash.domain.models import Notification, utcnow
from newsflash.domain.notifications.outbox import OutboundNotification
from newsflash.domain.pagination import Page, paginate
from newsflash.infra.gateway.base import PersistenceGateway
from newsflash.obs import metrics as obs_metrics


class NotificationService:
	def __init__(self, gateway: PersistenceGateway) -> None:
		self.gateway = gateway

	async def record(self, task: OutboundNotification) -> list[Notification]:
		"""Create one unread record per recipient user of the task."""
		created: list[Notification] = []
		for user_id in dict.fromkeys(task.user_ids):
			notification = Notification(
				id=ids.generate_id(ids.NOTIFICATION),
				user_id=user_id,
				type=task.type,
				title=task.title,
				message=task.body,
				data=task.data,
			)
			created.append(await self.gateway.create_notification(notification))
		obs_metrics.notification_persisted(task.type, len(created))
		return created

	async def _require_user(self, user_id: str) -> None:
		if await self.gateway.get_user(user_id) is None:
			raise NotFoundError("User not found")

	async def list_for_user(
		self,
		user_id: str,
		*,
		page: int | None = None,
		limit: int | None = None,
		unread_only: bool = False,
	) -> Page[Notification]:
		await self._require_user(user_id)
		items = await self.gateway.list_notifications(user_id, unread_only=unread_only)
		return paginate(items, page, limit)

	async def mark_read(self, user_id: str, notification_ids: Iterable[str]) -> list[dict[str, object]]:
		requested = list(dict.fromkeys(notification_ids))
		if not requested:
			raise ValidationError("notificationIds must be a non-empty list")
		await self._require_user(user_id)
		results: list[dict[str, object]] = []
		async with self.gateway.transaction():
			for notification_id in requested:
				notification = await self.gateway.get_notification(notification_id)
				if notification is None or notification.user_id != user_id:
					results.append({"id": notification_id, "success": False, "error": "Notification not found"})
					continue
				if not notification.is_read:
					notification.is_read = True
					notification.read_at = utcnow()
					await self.gateway.update_notification(notification)
				results.append({"id": notification_id, "success": True})
		return results

	async def stats(self, user_id: str) -> dict[str, object]:
		await self._require_user(user_id)
		items = await self.gateway.list_notifications(user_id)
		unread = sum(1 for item in items if not item.is_read)
		return {
			"total": len(items),
			"unread": unread,
			"read": len(items) - unread,
			"byType": dict(Counter(item.type for item in items)),
		}
