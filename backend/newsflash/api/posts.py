"""FastAPI routes for posts, newsflash generation, likes and comments."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, status
from pydantic import ValidationError as PydanticValidationError

from newsflash.api import envelope, schemas
from newsflash.domain.errors import ValidationError
from newsflash.domain.models import Post
from newsflash.domain.pagination import Page
from newsflash.services import Services, get_services

router = APIRouter(prefix="/posts", tags=["posts"])


async def _views(services: Services, posts: list[Post]) -> list[schemas.PostView]:
	authors = await services.posts.authors(posts)
	return [schemas.PostView.of(post, authors.get(post.user_id)) for post in posts]


async def paged_posts(services: Services, message: str, result: Page[Post]) -> dict:
	return envelope.paged(message, result, "Posts", data=await _views(services, result.items))


@router.get("")
async def list_posts_endpoint(
	viewer_id: Optional[str] = Query(default=None, alias="userId"),
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=20, ge=1, le=100),
	services: Services = Depends(get_services),
) -> dict:
	result = await services.posts.list_feed(viewer_id, page=page, limit=limit)
	return await paged_posts(services, "Posts retrieved successfully", result)


@router.get("/user/{user_id}")
async def user_posts_endpoint(
	user_id: str,
	viewer_id: Optional[str] = Query(default=None, alias="viewerId"),
	include_friends: bool = Query(default=False, alias="includeFriends"),
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=20, ge=1, le=100),
	services: Services = Depends(get_services),
) -> dict:
	result = await services.posts.list_user_posts(
		user_id,
		viewer_id,
		include_friends=include_friends,
		page=page,
		limit=limit,
	)
	return await paged_posts(services, "User posts retrieved successfully", result)


@router.get("/single/{post_id}")
async def single_post_endpoint(
	post_id: str,
	viewer_id: Optional[str] = Query(default=None, alias="userId"),
	services: Services = Depends(get_services),
) -> dict:
	post = await services.posts.get_visible_post(post_id, viewer_id)
	views = await _views(services, [post])
	return envelope.ok("Post retrieved successfully", views[0])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_post_endpoint(
	payload: schemas.CreatePostBody,
	services: Services = Depends(get_services),
) -> dict:
	try:
		audience = payload.audience()
	except PydanticValidationError as exc:
		raise ValidationError(exc.errors()[0].get("msg", "Invalid audience")) from exc
	post = await services.posts.create_post(payload.user_id, payload.raw_text, audience, payload.options())
	views = await _views(services, [post])
	return envelope.ok("Post created successfully", views[0])


@router.post("/generate-newsflash")
async def generate_newsflash_endpoint(
	payload: schemas.GenerateBody,
	services: Services = Depends(get_services),
) -> dict:
	result = await services.posts.preview_newsflash(payload.user_id, payload.raw_text, payload.options())
	return envelope.ok(
		"Newsflash generated successfully",
		{"rawText": payload.raw_text, "generatedText": result.text, "method": result.method},
	)


@router.put("/{post_id}")
async def update_post_endpoint(
	post_id: str,
	payload: schemas.UpdatePostBody,
	services: Services = Depends(get_services),
) -> dict:
	post = await services.posts.update_post(post_id, payload.user_id, payload.raw_text, payload.options())
	views = await _views(services, [post])
	return envelope.ok("Post updated successfully", views[0])


@router.delete("/{post_id}")
async def delete_post_endpoint(
	post_id: str,
	payload: schemas.ActorBody,
	services: Services = Depends(get_services),
) -> dict:
	await services.posts.delete_post(post_id, payload.user_id)
	return envelope.ok("Post deleted successfully", {"postId": post_id})


@router.post("/{post_id}/like")
async def like_endpoint(
	post_id: str,
	payload: schemas.ActorBody,
	services: Services = Depends(get_services),
) -> dict:
	result = await services.engagement.toggle_like(post_id, payload.user_id)
	message = "Post liked successfully" if result.is_liked else "Post unliked successfully"
	return envelope.ok(message, result)


@router.get("/{post_id}/likes")
async def likes_endpoint(post_id: str, services: Services = Depends(get_services)) -> dict:
	users = await services.engagement.list_likes(post_id)
	return envelope.ok("Likes retrieved successfully", users, count=len(users))


@router.post("/{post_id}/comments", status_code=status.HTTP_201_CREATED)
async def add_comment_endpoint(
	post_id: str,
	payload: schemas.CommentBody,
	services: Services = Depends(get_services),
) -> dict:
	comment = await services.engagement.add_comment(post_id, payload.user_id, payload.text)
	post = await services.posts.get_post(post_id)
	return envelope.ok(
		"Comment added successfully",
		{"comment": comment, "commentsCount": post.comments_count},
	)


@router.get("/{post_id}/comments")
async def list_comments_endpoint(
	post_id: str,
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=20, ge=1, le=100),
	services: Services = Depends(get_services),
) -> dict:
	result = await services.engagement.list_comments(post_id, page=page, limit=limit)
	return envelope.paged("Comments retrieved successfully", result, "Comments")


@router.delete("/{post_id}/comments/{comment_id}")
async def delete_comment_endpoint(
	post_id: str,
	comment_id: str,
	payload: schemas.ActorBody = Body(...),
	services: Services = Depends(get_services),
) -> dict:
	post = await services.engagement.delete_comment(post_id, comment_id, payload.user_id)
	return envelope.ok(
		"Comment deleted successfully",
		{"commentId": comment_id, "commentsCount": post.comments_count},
	)
