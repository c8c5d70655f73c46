"""Domain models for users, relationships, posts, groups and notifications."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

AudienceType = Literal["public", "friends", "friend", "groups"]
Visibility = Literal["public", "friends_only", "friend_only", "groups_only"]
EdgeStatus = Literal["pending", "accepted"]
RelationshipStatus = Literal["none", "pending", "accepted"]

VISIBILITY_BY_AUDIENCE: dict[str, str] = {
	"public": "public",
	"friends": "friends_only",
	"friend": "friend_only",
	"groups": "groups_only",
}


def utcnow() -> datetime:
	return datetime.now(timezone.utc)


class WireModel(BaseModel):
	model_config = ConfigDict(
		from_attributes=True,
		alias_generator=to_camel,
		populate_by_name=True,
	)

	def to_wire(self, **kwargs: Any) -> dict[str, Any]:
		return self.model_dump(mode="json", by_alias=True, **kwargs)


class User(WireModel):
	"""Represents an account and, depending on the deployment, its follow sets."""

	id: str
	full_name: str
	email: str
	bio: str = ""
	avatar: Optional[str] = None
	expo_push_token: Optional[str] = None
	followers: set[str] = Field(default_factory=set)
	following: set[str] = Field(default_factory=set)
	followers_count: int = 0
	following_count: int = 0
	friends_count: int = 0
	created_at: datetime = Field(default_factory=utcnow)
	updated_at: datetime = Field(default_factory=utcnow)

	def summary(self) -> "UserSummary":
		return UserSummary(id=self.id, full_name=self.full_name, avatar=self.avatar, bio=self.bio)


class UserSummary(WireModel):
	id: str
	full_name: str
	avatar: Optional[str] = None
	bio: str = ""


def pair_key(a: str, b: str) -> tuple[str, str]:
	"""Normalise an unordered user pair to (low, high)."""
	return (a, b) if a <= b else (b, a)


class FriendshipEdge(WireModel):
	"""Exactly one row per unordered pair of users."""

	user_low: str
	user_high: str
	status: EdgeStatus
	requester_id: str
	created_at: datetime = Field(default_factory=utcnow)
	updated_at: datetime = Field(default_factory=utcnow)

	@classmethod
	def pending(cls, requester_id: str, recipient_id: str) -> "FriendshipEdge":
		low, high = pair_key(requester_id, recipient_id)
		return cls(user_low=low, user_high=high, status="pending", requester_id=requester_id)

	def other(self, user_id: str) -> str:
		return self.user_high if user_id == self.user_low else self.user_low

	def involves(self, user_id: str) -> bool:
		return user_id in (self.user_low, self.user_high)


class FriendshipState(WireModel):
	status: RelationshipStatus
	requester_id: Optional[str] = None
	can_send_request: bool
	can_accept: bool
	can_cancel: bool
	are_friends: bool
	request_sent: bool
	request_received: bool
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None


class Comment(WireModel):
	id: str
	post_id: str
	user_id: str
	text: str
	created_at: datetime = Field(default_factory=utcnow)


class Post(WireModel):
	"""A user update together with its generated newsflash and engagement sets."""

	id: str
	user_id: str
	raw_text: str
	generated_text: str
	generation_method: str = "deterministic"
	audience_type: AudienceType = "public"
	target_friend_id: Optional[str] = None
	group_ids: list[str] = Field(default_factory=list)
	visibility: Visibility = "public"
	likes: set[str] = Field(default_factory=set)
	comments: list[Comment] = Field(default_factory=list)
	likes_count: int = 0
	comments_count: int = 0
	shares_count: int = 0
	timestamp: datetime = Field(default_factory=utcnow)
	created_at: datetime = Field(default_factory=utcnow)
	updated_at: datetime = Field(default_factory=utcnow)


class GroupSettings(WireModel):
	post_notifications: bool = True
	membership_notifications: bool = True


class Group(WireModel):
	"""Owner is always a member; invites stay disjoint from members."""

	id: str
	name: str
	description: str = ""
	owner_id: str
	members: set[str] = Field(default_factory=set)
	invites: set[str] = Field(default_factory=set)
	settings: GroupSettings = Field(default_factory=GroupSettings)
	created_at: datetime = Field(default_factory=utcnow)
	updated_at: datetime = Field(default_factory=utcnow)


class Notification(WireModel):
	id: str
	user_id: str
	type: str
	title: str
	message: str
	data: dict[str, Any] = Field(default_factory=dict)
	is_read: bool = False
	created_at: datetime = Field(default_factory=utcnow)
	read_at: Optional[datetime] = None
