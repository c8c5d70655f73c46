"""FastAPI routes for the notification inbox."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from newsflash.api import envelope, schemas
from newsflash.services import Services, get_services

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/{user_id}")
async def list_notifications_endpoint(
	user_id: str,
	unread_only: bool = Query(default=False, alias="unreadOnly"),
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=20, ge=1, le=100),
	services: Services = Depends(get_services),
) -> dict:
	result = await services.notifications.list_for_user(user_id, page=page, limit=limit, unread_only=unread_only)
	unread = (await services.notifications.stats(user_id))["unread"]
	return envelope.paged("Notifications retrieved successfully", result, "Notifications", unreadCount=unread)


@router.get("/{user_id}/stats")
async def notification_stats_endpoint(user_id: str, services: Services = Depends(get_services)) -> dict:
	stats = await services.notifications.stats(user_id)
	return envelope.ok("Notification stats retrieved successfully", stats)


@router.post("/read")
async def mark_read_endpoint(
	payload: schemas.MarkReadBody,
	services: Services = Depends(get_services),
) -> dict:
	results = await services.notifications.mark_read(payload.user_id, payload.notification_ids)
	updated = sum(1 for item in results if item["success"])
	return envelope.ok(f"Marked {updated} notification(s) as read", results, updatedCount=updated)
