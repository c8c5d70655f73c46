"""FastAPI routes for accounts, follows and friendships."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from newsflash.api import envelope, schemas
from newsflash.domain.errors import ValidationError
from newsflash.services import Services, get_services

router = APIRouter(tags=["social"])


@router.post("/auth/login")
async def login_endpoint(
	payload: schemas.LoginBody,
	services: Services = Depends(get_services),
):
	user, created = await services.relationships.login(payload.full_name, str(payload.email))
	body = envelope.ok(
		"User created successfully" if created else "Login successful",
		schemas.UserProfile.of(user),
	)
	return JSONResponse(status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK, content=body)


@router.get("/users")
async def list_users_endpoint(
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=20, ge=1, le=100),
	services: Services = Depends(get_services),
) -> dict:
	result = await services.relationships.list_users(page=page, limit=limit)
	return envelope.paged(
		"Users retrieved successfully",
		result,
		"Users",
		data=[schemas.UserProfile.of(user) for user in result.items],
	)


@router.post("/users/check")
async def check_user_endpoint(
	payload: schemas.CheckUserBody,
	services: Services = Depends(get_services),
) -> dict:
	exists = await services.relationships.user_exists(payload.email)
	return envelope.ok(
		"User existence check completed",
		{"exists": exists, "email": payload.email.strip().lower()},
	)


@router.get("/users/{user_id}")
async def get_user_endpoint(user_id: str, services: Services = Depends(get_services)) -> dict:
	user = await services.relationships.get_user(user_id)
	return envelope.ok("User retrieved successfully", schemas.UserProfile.of(user))


@router.put("/users/{user_id}")
async def update_profile_endpoint(
	user_id: str,
	payload: schemas.ProfileUpdateBody,
	services: Services = Depends(get_services),
) -> dict:
	user = await services.relationships.update_profile(
		user_id,
		payload.user_id,
		full_name=payload.full_name,
		bio=payload.bio,
	)
	return envelope.ok("User profile updated successfully", schemas.UserProfile.of(user))


@router.post("/users/friendship-status/bulk")
async def bulk_status_endpoint(
	payload: schemas.BulkStatusBody,
	services: Services = Depends(get_services),
) -> dict:
	entries = await services.relationships.bulk_status(payload.user_id, payload.user_ids)
	return envelope.ok("Friendship statuses retrieved successfully", entries)


@router.post("/users/{user_id}/push-token")
async def push_token_endpoint(
	user_id: str,
	payload: schemas.PushTokenBody,
	services: Services = Depends(get_services),
) -> dict:
	user = await services.relationships.register_push_token(user_id, payload.expo_push_token)
	return envelope.ok("Push token registered successfully", {"userId": user.id})


@router.post("/users/{user_id}/follow")
async def follow_endpoint(
	user_id: str,
	payload: schemas.ActorBody,
	services: Services = Depends(get_services),
) -> dict:
	result = await services.relationships.toggle_follow(user_id, payload.user_id)
	message = "User followed successfully" if result.is_following else "User unfollowed successfully"
	return envelope.ok(message, result)


@router.post("/users/{user_id}/friend-request")
async def friend_request_endpoint(
	user_id: str,
	payload: schemas.ActorBody,
	services: Services = Depends(get_services),
) -> dict:
	await services.relationships.send_request(payload.user_id, user_id)
	state = await services.relationships.get_status(payload.user_id, user_id)
	return envelope.ok("Friend request sent successfully", state)


@router.post("/users/{user_id}/accept-friend")
async def accept_friend_endpoint(
	user_id: str,
	payload: schemas.ActorBody,
	services: Services = Depends(get_services),
) -> dict:
	await services.relationships.accept(user_id, payload.user_id)
	state = await services.relationships.get_status(payload.user_id, user_id)
	return envelope.ok("Friend request accepted successfully", state)


@router.post("/users/{user_id}/reject-friend")
async def reject_friend_endpoint(
	user_id: str,
	payload: schemas.ActorBody,
	services: Services = Depends(get_services),
) -> dict:
	await services.relationships.reject(user_id, payload.user_id)
	return envelope.ok("Friend request rejected successfully", {"userId": user_id})


@router.post("/users/{user_id}/cancel-friend-request")
async def cancel_friend_request_endpoint(
	user_id: str,
	payload: schemas.ActorBody,
	services: Services = Depends(get_services),
) -> dict:
	await services.relationships.cancel(user_id, payload.user_id)
	return envelope.ok("Friend request cancelled successfully", {"userId": user_id})


@router.post("/users/{user_id}/unfriend")
async def unfriend_endpoint(
	user_id: str,
	payload: schemas.ActorBody,
	services: Services = Depends(get_services),
) -> dict:
	await services.relationships.remove(payload.user_id, user_id)
	return envelope.ok("Friend removed successfully", {"userId": user_id})


@router.get("/users/{user_id}/friends")
async def friends_endpoint(
	user_id: str,
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=20, ge=1, le=100),
	services: Services = Depends(get_services),
) -> dict:
	result = await services.relationships.list_friends(user_id, page=page, limit=limit)
	return envelope.paged("Friends retrieved successfully", result, "Friends")


@router.get("/users/{user_id}/followers")
async def followers_endpoint(
	user_id: str,
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=20, ge=1, le=100),
	services: Services = Depends(get_services),
) -> dict:
	result = await services.relationships.list_followers(user_id, page=page, limit=limit)
	return envelope.paged("Followers retrieved successfully", result, "Followers")


@router.get("/users/{user_id}/following")
async def following_endpoint(
	user_id: str,
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=20, ge=1, le=100),
	services: Services = Depends(get_services),
) -> dict:
	result = await services.relationships.list_following(user_id, page=page, limit=limit)
	return envelope.paged("Following retrieved successfully", result, "Following")


@router.get("/users/{user_id}/friend-requests")
async def friend_requests_endpoint(
	user_id: str,
	type: str = Query(default="received"),
	services: Services = Depends(get_services),
) -> dict:
	entries = await services.relationships.list_requests(user_id, type)  # type: ignore[arg-type]
	return envelope.ok(f"{type.capitalize()} friend requests retrieved successfully", entries, count=len(entries))


@router.get("/users/{user_id}/friendship-status")
async def friendship_status_endpoint(
	user_id: str,
	viewer_id: Optional[str] = Query(default=None, alias="userId"),
	services: Services = Depends(get_services),
) -> dict:
	if not viewer_id:
		raise ValidationError("userId query parameter is required")
	state = await services.relationships.get_status(viewer_id, user_id)
	return envelope.ok("Friendship status retrieved successfully", state)


@router.get("/users/{user_id}/mutual-friends")
async def mutual_friends_endpoint(
	user_id: str,
	other_id: Optional[str] = Query(default=None, alias="userId"),
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=20, ge=1, le=100),
	services: Services = Depends(get_services),
) -> dict:
	if not other_id:
		raise ValidationError("userId query parameter is required")
	result = await services.relationships.mutual_friends(user_id, other_id, page=page, limit=limit)
	return envelope.paged("Mutual friends retrieved successfully", result, "MutualFriends")


@router.get("/users/{user_id}/friend-suggestions")
async def friend_suggestions_endpoint(
	user_id: str,
	limit: int = Query(default=10, ge=1, le=50),
	services: Services = Depends(get_services),
) -> dict:
	suggestions = await services.relationships.suggestions(user_id, limit=limit)
	return envelope.ok("Friend suggestions retrieved successfully", suggestions)
