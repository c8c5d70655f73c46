"""FastAPI routes for groups and invitations."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from newsflash.api import envelope, schemas
from newsflash.api.posts import paged_posts
from newsflash.domain.errors import ValidationError
from newsflash.services import Services, get_services

router = APIRouter(prefix="/groups", tags=["groups"])


def _require_viewer(viewer_id: Optional[str]) -> str:
	if not viewer_id:
		raise ValidationError("userId query parameter is required")
	return viewer_id


@router.post("/user/{user_id}", status_code=status.HTTP_201_CREATED)
async def create_group_endpoint(
	user_id: str,
	payload: schemas.CreateGroupBody,
	services: Services = Depends(get_services),
) -> dict:
	group = await services.groups.create_group(user_id, payload.name, payload.description)
	detail = await services.groups.get_group(group.id, user_id)
	return envelope.ok("Group created successfully", detail)


@router.get("/user/{user_id}")
async def user_groups_endpoint(user_id: str, services: Services = Depends(get_services)) -> dict:
	groups = await services.groups.list_user_groups(user_id)
	return envelope.ok("User groups retrieved successfully", groups)


@router.post("/{group_id}/invite")
async def invite_endpoint(
	group_id: str,
	payload: schemas.InviteBody,
	services: Services = Depends(get_services),
) -> dict:
	result = await services.groups.invite(group_id, payload.user_id, payload.user_ids)
	return envelope.ok(f"Invited {len(result.invited_users)} user(s) to the group", result)


@router.post("/{group_id}/accept")
async def accept_endpoint(
	group_id: str,
	payload: schemas.ActorBody,
	services: Services = Depends(get_services),
) -> dict:
	group = await services.groups.accept_invite(group_id, payload.user_id)
	return envelope.ok("Invitation accepted successfully", {"groupId": group.id, "memberCount": len(group.members)})


@router.post("/{group_id}/decline")
async def decline_endpoint(
	group_id: str,
	payload: schemas.ActorBody,
	services: Services = Depends(get_services),
) -> dict:
	group = await services.groups.decline_invite(group_id, payload.user_id)
	return envelope.ok("Invitation declined successfully", {"groupId": group.id})


@router.post("/{group_id}/leave")
async def leave_endpoint(
	group_id: str,
	payload: schemas.ActorBody,
	services: Services = Depends(get_services),
) -> dict:
	result = await services.groups.leave(group_id, payload.user_id)
	message = "Group deleted successfully" if result.deleted else "Left group successfully"
	return envelope.ok(message, result)


@router.post("/{group_id}/transfer")
async def transfer_endpoint(
	group_id: str,
	payload: schemas.TransferBody,
	services: Services = Depends(get_services),
) -> dict:
	group = await services.groups.transfer_ownership(group_id, payload.user_id, payload.new_owner_id)
	return envelope.ok("Ownership transferred successfully", {"groupId": group.id, "ownerId": group.owner_id})


@router.get("/{group_id}")
async def group_endpoint(
	group_id: str,
	viewer_id: Optional[str] = Query(default=None, alias="userId"),
	services: Services = Depends(get_services),
) -> dict:
	detail = await services.groups.get_group(group_id, _require_viewer(viewer_id))
	return envelope.ok("Group retrieved successfully", detail)


@router.get("/{group_id}/posts")
async def group_posts_endpoint(
	group_id: str,
	viewer_id: Optional[str] = Query(default=None, alias="userId"),
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=20, ge=1, le=100),
	services: Services = Depends(get_services),
) -> dict:
	result = await services.posts.list_group_posts(group_id, _require_viewer(viewer_id), page=page, limit=limit)
	return await paged_posts(services, "Group posts retrieved successfully", result)
