"""Post lifecycle: creation with audience fan-out, updates, deletion and feeds."""

from __future__ import annotations

import logging
from typing import Optional

from newsflash.domain import ids
from newsflash.domain.errors import AuthorizationError, NotFoundError, ValidationError
from newsflash.domain.groups.service import GroupService
from newsflash.domain.models import Post, User, UserSummary, utcnow
from newsflash.domain.notifications.outbox import OutboundNotification, Outbox
from newsflash.domain.pagination import Page, paginate
from newsflash.domain.posts.audience import AudienceRequest, AudienceResolution, AudienceResolver
from newsflash.domain.posts.newsflash import GenerationResult, NewsflashOptions, NewsflashWriter
from newsflash.domain.social.service import RelationshipManager
from newsflash.infra.gateway.base import PersistenceGateway
from newsflash.infra.locks import KeyedLock
from newsflash.obs import metrics as obs_metrics

_LOG = logging.getLogger(__name__)

# audience type -> (notification type, title, channel)
_FANOUT = {
	"groups": ("group_post", "New Group Newsflash!", "group_posts"),
	"friends": ("friends_post", "New Friends Newsflash!", "friends_posts"),
	"friend": ("friend_post", "Personal Newsflash!", "personal_posts"),
	"public": ("public_post", "New Newsflash!", "public_posts"),
}


def preview(text: str, size: int = 100) -> str:
	return f"{text[:size]}{'...' if len(text) > size else ''}"


class PostService:
	def __init__(
		self,
		gateway: PersistenceGateway,
		*,
		relationships: RelationshipManager,
		groups: GroupService,
		resolver: Optional[AudienceResolver] = None,
		writer: Optional[NewsflashWriter] = None,
		outbox: Optional[Outbox] = None,
		locks: Optional[KeyedLock] = None,
	) -> None:
		self.gateway = gateway
		self.relationships = relationships
		self.groups = groups
		self.resolver = resolver or AudienceResolver(gateway, relationships, groups)
		self.writer = writer or NewsflashWriter()
		self.outbox = outbox or Outbox()
		self.locks = locks or KeyedLock()

	async def _author(self, user_id: str) -> User:
		if not ids.is_valid_id(user_id):
			raise ValidationError("Invalid user ID format")
		user = await self.gateway.get_user(user_id)
		if user is None:
			raise NotFoundError("User not found")
		return user

	async def get_post(self, post_id: str) -> Post:
		post = await self.gateway.get_post(post_id)
		if post is None:
			raise NotFoundError("Post not found")
		return post

	async def get_visible_post(self, post_id: str, viewer_id: Optional[str]) -> Post:
		post = await self.get_post(post_id)
		if not await self.resolver.can_view(post, viewer_id):
			raise AuthorizationError("Access denied")
		return post

	async def preview_newsflash(
		self,
		user_id: str,
		raw_text: str,
		options: Optional[NewsflashOptions] = None,
	) -> GenerationResult:
		author = await self._author(user_id)
		return await self.writer.write(raw_text, author.full_name, options)

	async def create_post(
		self,
		user_id: str,
		raw_text: str,
		audience: Optional[AudienceRequest] = None,
		options: Optional[NewsflashOptions] = None,
	) -> Post:
		"""Resolve the audience before anything is written, then persist and fan out."""
		author = await self._author(user_id)
		resolution = await self.resolver.resolve(audience or AudienceRequest(), author)
		generated = await self.writer.write(raw_text, author.full_name, options)
		now = utcnow()
		post = Post(
			id=ids.generate_id(ids.POST),
			user_id=author.id,
			raw_text=raw_text.strip(),
			generated_text=generated.text,
			generation_method=generated.method,
			audience_type=resolution.audience_type,
			target_friend_id=resolution.target_friend_id,
			group_ids=resolution.group_ids,
			visibility=resolution.visibility,
			timestamp=now,
			created_at=now,
			updated_at=now,
		)
		async with self.gateway.transaction():
			await self.gateway.create_post(post)
		obs_metrics.inc_post_created(post.audience_type)
		_LOG.info("post.created", extra={"post_id": post.id, "audience": post.audience_type})
		await self._fan_out(post, author, resolution)
		return post

	async def _fan_out(self, post: Post, author: User, resolution: AudienceResolution) -> None:
		if not resolution.recipient_ids:
			return
		type_name, title, channel = _FANOUT[post.audience_type]
		data: dict[str, object] = {
			"type": type_name,
			"postId": post.id,
			"userId": author.id,
			"userFullName": author.full_name,
		}
		if post.audience_type == "groups":
			data["groupIds"] = post.group_ids
		if post.audience_type == "friend":
			data["targetFriendId"] = post.target_friend_id
		await self.outbox.publish(
			OutboundNotification(
				type=type_name,
				title=title,
				body=f"{author.full_name}: {preview(post.generated_text)}",
				data=data,
				user_ids=resolution.recipient_ids,
				tokens=resolution.tokens,
				channel_id=channel,
				priority="high",
			)
		)

	async def update_post(
		self,
		post_id: str,
		user_id: str,
		raw_text: str,
		options: Optional[NewsflashOptions] = None,
	) -> Post:
		"""Only the author may edit; the newsflash is regenerated when the raw text changes."""
		async with self.locks.hold(post_id):
			async with self.gateway.transaction():
				post = await self.get_post(post_id)
				if post.user_id != user_id:
					raise AuthorizationError("You can only update your own posts")
				author = await self._author(user_id)
				text = (raw_text or "").strip()
				if text != post.raw_text:
					generated = await self.writer.write(text, author.full_name, options)
					post.raw_text = text
					post.generated_text = generated.text
					post.generation_method = generated.method
				post.updated_at = utcnow()
				await self.gateway.update_post(post)
		return post

	async def delete_post(self, post_id: str, user_id: str) -> None:
		async with self.locks.hold(post_id):
			async with self.gateway.transaction():
				post = await self.get_post(post_id)
				if post.user_id != user_id:
					raise AuthorizationError("You can only delete your own posts")
				await self.gateway.delete_post(post_id)
		_LOG.info("post.deleted", extra={"post_id": post_id})

	async def authors(self, posts: list[Post]) -> dict[str, UserSummary]:
		users = await self.gateway.get_users(list(dict.fromkeys(post.user_id for post in posts)))
		return {user.id: user.summary() for user in users}

	async def _visible(self, posts: list[Post], viewer_id: Optional[str]) -> list[Post]:
		friend_cache: dict[str, set[str]] = {}
		member_of: Optional[set[str]] = None
		if viewer_id is not None:
			member_of = {
				group.id
				for group in await self.gateway.list_groups_for_user(viewer_id)
				if viewer_id in group.members
			}
		return [
			post
			for post in posts
			if await self.resolver.can_view(post, viewer_id, friend_cache=friend_cache, member_of=member_of)
		]

	async def list_feed(
		self,
		viewer_id: Optional[str] = None,
		*,
		page: int | None = None,
		limit: int | None = None,
	) -> Page[Post]:
		if viewer_id is not None:
			await self._author(viewer_id)
		posts = await self._visible(await self.gateway.list_posts(), viewer_id)
		return paginate(posts, page, limit)

	async def list_user_posts(
		self,
		user_id: str,
		viewer_id: Optional[str] = None,
		*,
		include_friends: bool = False,
		page: int | None = None,
		limit: int | None = None,
	) -> Page[Post]:
		await self._author(user_id)
		authors = {user_id}
		if include_friends:
			authors.update(await self.relationships.friend_ids(user_id))
		posts = [post for post in await self.gateway.list_posts() if post.user_id in authors]
		return paginate(await self._visible(posts, viewer_id), page, limit)

	async def list_group_posts(
		self,
		group_id: str,
		viewer_id: str,
		*,
		page: int | None = None,
		limit: int | None = None,
	) -> Page[Post]:
		await self.groups.require_member(group_id, viewer_id)
		posts = [
			post
			for post in await self.gateway.list_posts()
			if post.audience_type == "groups" and group_id in post.group_ids
		]
		return paginate(posts, page, limit)

