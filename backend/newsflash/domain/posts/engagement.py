"""Likes and comments on posts."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Literal, Optional

from newsflash.domain import ids
from newsflash.domain.errors import AuthorizationError, NotFoundError, ValidationError
from newsflash.domain.models import Comment, Post, User, UserSummary, WireModel, utcnow
from newsflash.domain.notifications.outbox import OutboundNotification, Outbox
from newsflash.domain.pagination import Page, paginate
from newsflash.infra.gateway.base import PersistenceGateway
from newsflash.infra.locks import KeyedLock
from newsflash.obs import metrics as obs_metrics
from newsflash.settings import settings

_LOG = logging.getLogger(__name__)


class LikeResult(WireModel):
	is_liked: bool
	likes_count: int
	action: Literal["liked", "unliked"]


class CommentView(WireModel):
	id: str
	post_id: str
	user_id: str
	text: str
	created_at: datetime
	user: Optional[UserSummary] = None


class EngagementTracker:
	"""Owns the likes set and comment list of a post, and their paired counts."""

	def __init__(
		self,
		gateway: PersistenceGateway,
		*,
		outbox: Optional[Outbox] = None,
		locks: Optional[KeyedLock] = None,
	) -> None:
		self.gateway = gateway
		self.outbox = outbox or Outbox()
		self.locks = locks or KeyedLock()

	async def _post(self, post_id: str) -> Post:
		post = await self.gateway.get_post(post_id)
		if post is None:
			raise NotFoundError("Post not found")
		return post

	async def _user(self, user_id: str) -> User:
		if not ids.is_valid_id(user_id):
			raise ValidationError("Invalid user ID format")
		user = await self.gateway.get_user(user_id)
		if user is None:
			raise NotFoundError("User not found")
		return user

	async def _notify_author(self, post: Post, actor: User, task: OutboundNotification) -> None:
		if post.user_id == actor.id:
			return
		author = await self.gateway.get_user(post.user_id)
		if author is None:
			return
		task.user_ids = [author.id]
		task.tokens = [author.expo_push_token] if author.expo_push_token else []
		await self.outbox.publish(task)

	async def toggle_like(self, post_id: str, user_id: str) -> LikeResult:
		async with self.locks.hold(post_id):
			async with self.gateway.transaction():
				post = await self._post(post_id)
				user = await self._user(user_id)
				if user_id in post.likes:
					post.likes.discard(user_id)
					action = "unliked"
				else:
					post.likes.add(user_id)
					action = "liked"
				post.likes_count = len(post.likes)
				post.updated_at = utcnow()
				await self.gateway.update_post(post)
		obs_metrics.inc_like_toggle(action)
		if action == "liked":
			await self._notify_author(
				post,
				user,
				OutboundNotification(
					type="post_like",
					title="New Like",
					body=f"{user.full_name} liked your newsflash",
					data={"type": "post_like", "postId": post.id, "userId": user.id, "userFullName": user.full_name},
					channel_id="engagement",
					priority="normal",
				),
			)
		return LikeResult(is_liked=action == "liked", likes_count=post.likes_count, action=action)

	async def list_likes(self, post_id: str) -> list[UserSummary]:
		post = await self._post(post_id)
		users = await self.gateway.get_users(sorted(post.likes))
		return [user.summary() for user in users]

	async def add_comment(self, post_id: str, user_id: str, text: str) -> Comment:
		body = (text or "").strip()
		if not body:
			raise ValidationError("Comment text cannot be empty")
		if len(body) > settings.comment_text_max:
			raise ValidationError(f"Comment text cannot exceed {settings.comment_text_max} characters")
		async with self.locks.hold(post_id):
			async with self.gateway.transaction():
				post = await self._post(post_id)
				user = await self._user(user_id)
				comment = Comment(id=ids.generate_id(ids.COMMENT), post_id=post_id, user_id=user_id, text=body)
				await self.gateway.add_comment(comment)
				post.comments_count = len(post.comments) + 1
				post.updated_at = utcnow()
				await self.gateway.update_post(post)
		obs_metrics.inc_comment("added")
		await self._notify_author(
			post,
			user,
			OutboundNotification(
				type="post_comment",
				title="New Comment",
				body=f"{user.full_name}: {body[:100]}{'...' if len(body) > 100 else ''}",
				data={"type": "post_comment", "postId": post.id, "commentId": comment.id, "userId": user.id},
				channel_id="engagement",
				priority="normal",
			),
		)
		return comment

	async def delete_comment(self, post_id: str, comment_id: str, requester_id: str) -> Post:
		async with self.locks.hold(post_id):
			async with self.gateway.transaction():
				post = await self._post(post_id)
				comment = next((item for item in post.comments if item.id == comment_id), None)
				if comment is None:
					raise NotFoundError("Comment not found")
				if comment.user_id != requester_id:
					raise AuthorizationError("You can only delete your own comments")
				await self.gateway.delete_comment(post_id, comment_id)
				post.comments = [item for item in post.comments if item.id != comment_id]
				post.comments_count = len(post.comments)
				post.updated_at = utcnow()
				await self.gateway.update_post(post)
		obs_metrics.inc_comment("deleted")
		return post

	async def list_comments(self, post_id: str, *, page: int | None = None, limit: int | None = None) -> Page[CommentView]:
		post = await self._post(post_id)
		comments = sorted(post.comments, key=lambda item: item.created_at, reverse=True)
		authors = {user.id: user.summary() for user in await self.gateway.get_users({c.user_id for c in comments})}
		views = [
			CommentView(
				id=comment.id,
				post_id=comment.post_id,
				user_id=comment.user_id,
				text=comment.text,
				created_at=comment.created_at,
				user=authors.get(comment.user_id),
			)
			for comment in comments
		]
		return paginate(views, page, limit)
