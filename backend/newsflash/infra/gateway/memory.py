"""In-process arena store keyed by entity id."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Optional

from newsflash.domain.models import (
	Comment,
	FriendshipEdge,
	Group,
	Notification,
	Post,
	User,
	pair_key,
)


class MemoryGateway:
	"""Dict-backed gateway used for development and tests.

	Every read returns a deep copy so a caller mutating its copy never leaks
	half-applied state into the arena.
	"""

	def __init__(self) -> None:
		self._users: dict[str, User] = {}
		self._edges: dict[tuple[str, str], FriendshipEdge] = {}
		self._posts: dict[str, Post] = {}
		self._comments: dict[str, list[Comment]] = {}
		self._groups: dict[str, Group] = {}
		self._notifications: dict[str, Notification] = {}

	@asynccontextmanager
	async def transaction(self) -> AsyncIterator[None]:
		yield

	# users
	async def get_user(self, user_id: str) -> Optional[User]:
		user = self._users.get(user_id)
		return user.model_copy(deep=True) if user else None

	async def get_users(self, user_ids: Iterable[str]) -> list[User]:
		return [self._users[uid].model_copy(deep=True) for uid in user_ids if uid in self._users]

	async def find_user_by_email(self, email: str) -> Optional[User]:
		lowered = email.lower()
		for user in self._users.values():
			if user.email.lower() == lowered:
				return user.model_copy(deep=True)
		return None

	async def list_users(self) -> list[User]:
		return [user.model_copy(deep=True) for user in self._users.values()]

	async def create_user(self, user: User) -> User:
		self._users[user.id] = user.model_copy(deep=True)
		return user

	async def update_user(self, user: User) -> User:
		self._users[user.id] = user.model_copy(deep=True)
		return user

	# friendship edges
	async def get_edge(self, a: str, b: str) -> Optional[FriendshipEdge]:
		edge = self._edges.get(pair_key(a, b))
		return edge.model_copy(deep=True) if edge else None

	async def put_edge(self, edge: FriendshipEdge) -> FriendshipEdge:
		self._edges[(edge.user_low, edge.user_high)] = edge.model_copy(deep=True)
		return edge

	async def delete_edge(self, a: str, b: str) -> bool:
		return self._edges.pop(pair_key(a, b), None) is not None

	async def list_edges(self, user_id: str, status: Optional[str] = None) -> list[FriendshipEdge]:
		return [
			edge.model_copy(deep=True)
			for edge in self._edges.values()
			if edge.involves(user_id) and (status is None or edge.status == status)
		]

	# posts and comments
	def _attach_comments(self, post: Post) -> Post:
		copy = post.model_copy(deep=True)
		copy.comments = [comment.model_copy() for comment in self._comments.get(post.id, [])]
		return copy

	async def get_post(self, post_id: str) -> Optional[Post]:
		post = self._posts.get(post_id)
		return self._attach_comments(post) if post else None

	async def list_posts(self) -> list[Post]:
		posts = sorted(self._posts.values(), key=lambda item: item.created_at, reverse=True)
		return [self._attach_comments(post) for post in posts]

	async def create_post(self, post: Post) -> Post:
		stored = post.model_copy(deep=True)
		stored.comments = []
		self._posts[post.id] = stored
		self._comments.setdefault(post.id, [])
		return post

	async def update_post(self, post: Post) -> Post:
		stored = post.model_copy(deep=True)
		stored.comments = []
		self._posts[post.id] = stored
		return post

	async def delete_post(self, post_id: str) -> bool:
		self._comments.pop(post_id, None)
		return self._posts.pop(post_id, None) is not None

	async def add_comment(self, comment: Comment) -> Comment:
		self._comments.setdefault(comment.post_id, []).append(comment.model_copy())
		return comment

	async def delete_comment(self, post_id: str, comment_id: str) -> bool:
		comments = self._comments.get(post_id, [])
		remaining = [item for item in comments if item.id != comment_id]
		self._comments[post_id] = remaining
		return len(remaining) != len(comments)

	# groups
	async def get_group(self, group_id: str) -> Optional[Group]:
		group = self._groups.get(group_id)
		return group.model_copy(deep=True) if group else None

	async def list_groups_for_user(self, user_id: str) -> list[Group]:
		return [
			group.model_copy(deep=True)
			for group in self._groups.values()
			if user_id in group.members or user_id in group.invites
		]

	async def create_group(self, group: Group) -> Group:
		self._groups[group.id] = group.model_copy(deep=True)
		return group

	async def update_group(self, group: Group) -> Group:
		self._groups[group.id] = group.model_copy(deep=True)
		return group

	async def delete_group(self, group_id: str) -> bool:
		return self._groups.pop(group_id, None) is not None

	# notifications
	async def create_notification(self, notification: Notification) -> Notification:
		self._notifications[notification.id] = notification.model_copy(deep=True)
		return notification

	async def get_notification(self, notification_id: str) -> Optional[Notification]:
		notification = self._notifications.get(notification_id)
		return notification.model_copy(deep=True) if notification else None

	async def list_notifications(self, user_id: str, *, unread_only: bool = False) -> list[Notification]:
		items = [
			item.model_copy(deep=True)
			for item in self._notifications.values()
			if item.user_id == user_id and not (unread_only and item.is_read)
		]
		items.sort(key=lambda item: item.created_at, reverse=True)
		return items

	async def update_notification(self, notification: Notification) -> Notification:
		self._notifications[notification.id] = notification.model_copy(deep=True)
		return notification
