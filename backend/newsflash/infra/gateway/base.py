"""Persistence capability set consumed by the domain services."""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Iterable, Optional, Protocol

from newsflash.domain.models import Comment, FriendshipEdge, Group, Notification, Post, User


class PersistenceGateway(Protocol):
	"""Targeted, id-keyed storage operations.

	Reads hand back detached copies; a mutation is only visible to other
	callers once it is written back through the matching ``update_*`` call.
	"""

	def transaction(self) -> AbstractAsyncContextManager[None]:
		...

	# users
	async def get_user(self, user_id: str) -> Optional[User]:
		...

	async def get_users(self, user_ids: Iterable[str]) -> list[User]:
		...

	async def find_user_by_email(self, email: str) -> Optional[User]:
		...

	async def list_users(self) -> list[User]:
		...

	async def create_user(self, user: User) -> User:
		...

	async def update_user(self, user: User) -> User:
		...

	# friendship edges
	async def get_edge(self, a: str, b: str) -> Optional[FriendshipEdge]:
		...

	async def put_edge(self, edge: FriendshipEdge) -> FriendshipEdge:
		...

	async def delete_edge(self, a: str, b: str) -> bool:
		...

	async def list_edges(self, user_id: str, status: Optional[str] = None) -> list[FriendshipEdge]:
		...

	# posts and comments
	async def get_post(self, post_id: str) -> Optional[Post]:
		...

	async def list_posts(self) -> list[Post]:
		...

	async def create_post(self, post: Post) -> Post:
		...

	async def update_post(self, post: Post) -> Post:
		...

	async def delete_post(self, post_id: str) -> bool:
		...

	async def add_comment(self, comment: Comment) -> Comment:
		...

	async def delete_comment(self, post_id: str, comment_id: str) -> bool:
		...

	# groups
	async def get_group(self, group_id: str) -> Optional[Group]:
		...

	async def list_groups_for_user(self, user_id: str) -> list[Group]:
		...

	async def create_group(self, group: Group) -> Group:
		...

	async def update_group(self, group: Group) -> Group:
		...

	async def delete_group(self, group_id: str) -> bool:
		...

	# notifications
	async def create_notification(self, notification: Notification) -> Notification:
		...

	async def get_notification(self, notification_id: str) -> Optional[Notification]:
		...

	async def list_notifications(self, user_id: str, *, unread_only: bool = False) -> list[Notification]:
		...

	async def update_notification(self, notification: Notification) -> Notification:
		...
