"""asyncpg-backed gateway with row-level statements."""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any, AsyncIterator, Iterable, Optional

import asyncpg

from newsflash.domain.models import (
	Comment,
	FriendshipEdge,
	Group,
	GroupSettings,
	Notification,
	Post,
	User,
	pair_key,
)
from newsflash.infra.postgres import get_pool

_CONN: ContextVar[Optional[asyncpg.Connection]] = ContextVar("gateway_conn", default=None)

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
	id TEXT PRIMARY KEY,
	full_name TEXT NOT NULL,
	email TEXT NOT NULL UNIQUE,
	bio TEXT NOT NULL DEFAULT '',
	avatar TEXT,
	expo_push_token TEXT,
	followers TEXT[] NOT NULL DEFAULT '{}',
	following TEXT[] NOT NULL DEFAULT '{}',
	followers_count INTEGER NOT NULL DEFAULT 0,
	following_count INTEGER NOT NULL DEFAULT 0,
	friends_count INTEGER NOT NULL DEFAULT 0,
	created_at TIMESTAMPTZ NOT NULL,
	updated_at TIMESTAMPTZ NOT NULL
);
CREATE TABLE IF NOT EXISTS friendships (
	user_low TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
	user_high TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
	status TEXT NOT NULL CHECK (status IN ('pending', 'accepted')),
	requester_id TEXT NOT NULL,
	created_at TIMESTAMPTZ NOT NULL,
	updated_at TIMESTAMPTZ NOT NULL,
	PRIMARY KEY (user_low, user_high),
	CHECK (user_low < user_high)
);
CREATE TABLE IF NOT EXISTS posts (
	id TEXT PRIMARY KEY,
	user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
	raw_text TEXT NOT NULL,
	generated_text TEXT NOT NULL,
	generation_method TEXT NOT NULL DEFAULT 'deterministic',
	audience_type TEXT NOT NULL,
	target_friend_id TEXT,
	group_ids TEXT[] NOT NULL DEFAULT '{}',
	visibility TEXT NOT NULL,
	likes TEXT[] NOT NULL DEFAULT '{}',
	likes_count INTEGER NOT NULL DEFAULT 0,
	comments_count INTEGER NOT NULL DEFAULT 0,
	shares_count INTEGER NOT NULL DEFAULT 0,
	timestamp TIMESTAMPTZ NOT NULL,
	created_at TIMESTAMPTZ NOT NULL,
	updated_at TIMESTAMPTZ NOT NULL
);
CREATE TABLE IF NOT EXISTS comments (
	id TEXT PRIMARY KEY,
	post_id TEXT NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
	user_id TEXT NOT NULL,
	text TEXT NOT NULL,
	created_at TIMESTAMPTZ NOT NULL
);
CREATE TABLE IF NOT EXISTS groups (
	id TEXT PRIMARY KEY,
	name TEXT NOT NULL,
	description TEXT NOT NULL DEFAULT '',
	owner_id TEXT NOT NULL,
	members TEXT[] NOT NULL DEFAULT '{}',
	invites TEXT[] NOT NULL DEFAULT '{}',
	settings JSONB NOT NULL DEFAULT '{}',
	created_at TIMESTAMPTZ NOT NULL,
	updated_at TIMESTAMPTZ NOT NULL
);
CREATE TABLE IF NOT EXISTS notifications (
	id TEXT PRIMARY KEY,
	user_id TEXT NOT NULL,
	type TEXT NOT NULL,
	title TEXT NOT NULL,
	message TEXT NOT NULL,
	data JSONB NOT NULL DEFAULT '{}',
	is_read BOOLEAN NOT NULL DEFAULT FALSE,
	created_at TIMESTAMPTZ NOT NULL,
	read_at TIMESTAMPTZ
);
CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications(user_id, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_comments_post ON comments(post_id, created_at);
"""


def _json(value: Any) -> dict[str, Any]:
	if value is None:
		return {}
	if isinstance(value, str):
		return json.loads(value)
	return dict(value)


def _user(row: asyncpg.Record) -> User:
	data = dict(row)
	data["followers"] = set(data.get("followers") or [])
	data["following"] = set(data.get("following") or [])
	return User.model_validate(data)


def _edge(row: asyncpg.Record) -> FriendshipEdge:
	return FriendshipEdge.model_validate(dict(row))


def _post(row: asyncpg.Record, comments: list[Comment]) -> Post:
	data = dict(row)
	data["likes"] = set(data.get("likes") or [])
	data["group_ids"] = list(data.get("group_ids") or [])
	data["comments"] = comments
	return Post.model_validate(data)


def _group(row: asyncpg.Record) -> Group:
	data = dict(row)
	data["members"] = set(data.get("members") or [])
	data["invites"] = set(data.get("invites") or [])
	data["settings"] = GroupSettings.model_validate(_json(data.get("settings")))
	return Group.model_validate(data)


def _notification(row: asyncpg.Record) -> Notification:
	data = dict(row)
	data["data"] = _json(data.get("data"))
	return Notification.model_validate(data)


class PostgresGateway:
	"""Row-level gateway; ``transaction()`` binds one connection for the enclosed calls."""

	@asynccontextmanager
	async def transaction(self) -> AsyncIterator[None]:
		if _CONN.get() is not None:
			yield
			return
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				token = _CONN.set(conn)
				try:
					yield
				finally:
					_CONN.reset(token)

	@asynccontextmanager
	async def _conn(self) -> AsyncIterator[asyncpg.Connection]:
		bound = _CONN.get()
		if bound is not None:
			yield bound
			return
		pool = await get_pool()
		async with pool.acquire() as conn:
			yield conn

	async def ensure_schema(self) -> None:
		async with self._conn() as conn:
			await conn.execute(SCHEMA)

	# users
	async def get_user(self, user_id: str) -> Optional[User]:
		async with self._conn() as conn:
			row = await conn.fetchrow("SELECT * FROM users WHERE id = $1", user_id)
		return _user(row) if row else None

	async def get_users(self, user_ids: Iterable[str]) -> list[User]:
		ids = list(user_ids)
		if not ids:
			return []
		async with self._conn() as conn:
			rows = await conn.fetch("SELECT * FROM users WHERE id = ANY($1::text[])", ids)
		by_id = {row["id"]: _user(row) for row in rows}
		return [by_id[uid] for uid in ids if uid in by_id]

	async def find_user_by_email(self, email: str) -> Optional[User]:
		async with self._conn() as conn:
			row = await conn.fetchrow("SELECT * FROM users WHERE lower(email) = lower($1)", email)
		return _user(row) if row else None

	async def list_users(self) -> list[User]:
		async with self._conn() as conn:
			rows = await conn.fetch("SELECT * FROM users ORDER BY created_at")
		return [_user(row) for row in rows]

	async def create_user(self, user: User) -> User:
		async with self._conn() as conn:
			await conn.execute(
				"""
				INSERT INTO users (id, full_name, email, bio, avatar, expo_push_token, followers, following,
					followers_count, following_count, friends_count, created_at, updated_at)
				VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13)
				""",
				user.id,
				user.full_name,
				user.email,
				user.bio,
				user.avatar,
				user.expo_push_token,
				sorted(user.followers),
				sorted(user.following),
				user.followers_count,
				user.following_count,
				user.friends_count,
				user.created_at,
				user.updated_at,
			)
		return user

	async def update_user(self, user: User) -> User:
		async with self._conn() as conn:
			await conn.execute(
				"""
				UPDATE users
				SET full_name = $2, bio = $3, avatar = $4, expo_push_token = $5, followers = $6,
					following = $7, followers_count = $8, following_count = $9, friends_count = $10,
					updated_at = $11
				WHERE id = $1
				""",
				user.id,
				user.full_name,
				user.bio,
				user.avatar,
				user.expo_push_token,
				sorted(user.followers),
				sorted(user.following),
				user.followers_count,
				user.following_count,
				user.friends_count,
				user.updated_at,
			)
		return user

	# friendship edges
	async def get_edge(self, a: str, b: str) -> Optional[FriendshipEdge]:
		low, high = pair_key(a, b)
		async with self._conn() as conn:
			row = await conn.fetchrow(
				"SELECT * FROM friendships WHERE user_low = $1 AND user_high = $2",
				low,
				high,
			)
		return _edge(row) if row else None

	async def put_edge(self, edge: FriendshipEdge) -> FriendshipEdge:
		async with self._conn() as conn:
			await conn.execute(
				"""
				INSERT INTO friendships (user_low, user_high, status, requester_id, created_at, updated_at)
				VALUES ($1, $2, $3, $4, $5, $6)
				ON CONFLICT (user_low, user_high)
				DO UPDATE SET status = EXCLUDED.status, requester_id = EXCLUDED.requester_id,
					updated_at = EXCLUDED.updated_at
				""",
				edge.user_low,
				edge.user_high,
				edge.status,
				edge.requester_id,
				edge.created_at,
				edge.updated_at,
			)
		return edge

	async def delete_edge(self, a: str, b: str) -> bool:
		low, high = pair_key(a, b)
		async with self._conn() as conn:
			result = await conn.execute(
				"DELETE FROM friendships WHERE user_low = $1 AND user_high = $2",
				low,
				high,
			)
		return result.endswith(" 1")

	async def list_edges(self, user_id: str, status: Optional[str] = None) -> list[FriendshipEdge]:
		async with self._conn() as conn:
			rows = await conn.fetch(
				"""
				SELECT * FROM friendships
				WHERE (user_low = $1 OR user_high = $1) AND ($2::text IS NULL OR status = $2)
				ORDER BY updated_at DESC
				""",
				user_id,
				status,
			)
		return [_edge(row) for row in rows]

	# posts and comments
	async def _comments_for(self, conn: asyncpg.Connection, post_ids: list[str]) -> dict[str, list[Comment]]:
		grouped: dict[str, list[Comment]] = {post_id: [] for post_id in post_ids}
		if not post_ids:
			return grouped
		rows = await conn.fetch(
			"SELECT * FROM comments WHERE post_id = ANY($1::text[]) ORDER BY created_at",
			post_ids,
		)
		for row in rows:
			grouped[row["post_id"]].append(Comment.model_validate(dict(row)))
		return grouped

	async def get_post(self, post_id: str) -> Optional[Post]:
		async with self._conn() as conn:
			row = await conn.fetchrow("SELECT * FROM posts WHERE id = $1", post_id)
			if row is None:
				return None
			comments = await self._comments_for(conn, [post_id])
		return _post(row, comments[post_id])

	async def list_posts(self) -> list[Post]:
		async with self._conn() as conn:
			rows = await conn.fetch("SELECT * FROM posts ORDER BY created_at DESC")
			comments = await self._comments_for(conn, [row["id"] for row in rows])
		return [_post(row, comments[row["id"]]) for row in rows]

	async def create_post(self, post: Post) -> Post:
		async with self._conn() as conn:
			await conn.execute(
				"""
				INSERT INTO posts (id, user_id, raw_text, generated_text, generation_method, audience_type,
					target_friend_id, group_ids, visibility, likes, likes_count, comments_count,
					shares_count, timestamp, created_at, updated_at)
				VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16)
				""",
				post.id,
				post.user_id,
				post.raw_text,
				post.generated_text,
				post.generation_method,
				post.audience_type,
				post.target_friend_id,
				post.group_ids,
				post.visibility,
				sorted(post.likes),
				post.likes_count,
				post.comments_count,
				post.shares_count,
				post.timestamp,
				post.created_at,
				post.updated_at,
			)
		return post

	async def update_post(self, post: Post) -> Post:
		async with self._conn() as conn:
			await conn.execute(
				"""
				UPDATE posts
				SET raw_text = $2, generated_text = $3, generation_method = $4, likes = $5,
					likes_count = $6, comments_count = $7, updated_at = $8
				WHERE id = $1
				""",
				post.id,
				post.raw_text,
				post.generated_text,
				post.generation_method,
				sorted(post.likes),
				post.likes_count,
				post.comments_count,
				post.updated_at,
			)
		return post

	async def delete_post(self, post_id: str) -> bool:
		async with self._conn() as conn:
			result = await conn.execute("DELETE FROM posts WHERE id = $1", post_id)
		return result.endswith(" 1")

	async def add_comment(self, comment: Comment) -> Comment:
		async with self._conn() as conn:
			await conn.execute(
				"INSERT INTO comments (id, post_id, user_id, text, created_at) VALUES ($1, $2, $3, $4, $5)",
				comment.id,
				comment.post_id,
				comment.user_id,
				comment.text,
				comment.created_at,
			)
		return comment

	async def delete_comment(self, post_id: str, comment_id: str) -> bool:
		async with self._conn() as conn:
			result = await conn.execute(
				"DELETE FROM comments WHERE post_id = $1 AND id = $2",
				post_id,
				comment_id,
			)
		return result.endswith(" 1")

	# groups
	async def get_group(self, group_id: str) -> Optional[Group]:
		async with self._conn() as conn:
			row = await conn.fetchrow("SELECT * FROM groups WHERE id = $1", group_id)
		return _group(row) if row else None

	async def list_groups_for_user(self, user_id: str) -> list[Group]:
		async with self._conn() as conn:
			rows = await conn.fetch(
				"SELECT * FROM groups WHERE $1 = ANY(members) OR $1 = ANY(invites) ORDER BY created_at",
				user_id,
			)
		return [_group(row) for row in rows]

	async def create_group(self, group: Group) -> Group:
		async with self._conn() as conn:
			await conn.execute(
				"""
				INSERT INTO groups (id, name, description, owner_id, members, invites, settings, created_at, updated_at)
				VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, $8, $9)
				""",
				group.id,
				group.name,
				group.description,
				group.owner_id,
				sorted(group.members),
				sorted(group.invites),
				json.dumps(group.settings.model_dump()),
				group.created_at,
				group.updated_at,
			)
		return group

	async def update_group(self, group: Group) -> Group:
		async with self._conn() as conn:
			await conn.execute(
				"""
				UPDATE groups
				SET name = $2, description = $3, owner_id = $4, members = $5, invites = $6,
					settings = $7::jsonb, updated_at = $8
				WHERE id = $1
				""",
				group.id,
				group.name,
				group.description,
				group.owner_id,
				sorted(group.members),
				sorted(group.invites),
				json.dumps(group.settings.model_dump()),
				group.updated_at,
			)
		return group

	async def delete_group(self, group_id: str) -> bool:
		async with self._conn() as conn:
			result = await conn.execute("DELETE FROM groups WHERE id = $1", group_id)
		return result.endswith(" 1")

	# notifications
	async def create_notification(self, notification: Notification) -> Notification:
		async with self._conn() as conn:
			await conn.execute(
				"""
				INSERT INTO notifications (id, user_id, type, title, message, data, is_read, created_at, read_at)
				VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7, $8, $9)
				""",
				notification.id,
				notification.user_id,
				notification.type,
				notification.title,
				notification.message,
				json.dumps(notification.data, default=str),
				notification.is_read,
				notification.created_at,
				notification.read_at,
			)
		return notification

	async def get_notification(self, notification_id: str) -> Optional[Notification]:
		async with self._conn() as conn:
			row = await conn.fetchrow("SELECT * FROM notifications WHERE id = $1", notification_id)
		return _notification(row) if row else None

	async def list_notifications(self, user_id: str, *, unread_only: bool = False) -> list[Notification]:
		async with self._conn() as conn:
			rows = await conn.fetch(
				"""
				SELECT * FROM notifications
				WHERE user_id = $1 AND (NOT $2 OR is_read = FALSE)
				ORDER BY created_at DESC
				""",
				user_id,
				unread_only,
			)
		return [_notification(row) for row in rows]

	async def update_notification(self, notification: Notification) -> Notification:
		async with self._conn() as conn:
			await conn.execute(
				"UPDATE notifications SET is_read = $2, read_at = $3 WHERE id = $1",
				notification.id,
				notification.is_read,
				notification.read_at,
			)
		return notification
