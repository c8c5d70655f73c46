"""Request bodies and response views for the HTTP surface."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import EmailStr, Field

from newsflash.domain.models import AudienceType, Post, User, UserSummary, WireModel
from newsflash.domain.posts.audience import AudienceRequest
from newsflash.domain.posts.newsflash import NewsflashOptions


class ActorBody(WireModel):
	"""Body carrying the acting user's id."""

	user_id: str = Field(min_length=1)


class LoginBody(WireModel):
	full_name: str = Field(min_length=1, max_length=100)
	email: EmailStr


class ProfileUpdateBody(WireModel):
	"""Either field may be omitted; the acting user must own the profile."""

	user_id: str = Field(min_length=1)
	full_name: Optional[str] = None
	bio: Optional[str] = None


class CheckUserBody(WireModel):
	email: str


class PushTokenBody(WireModel):
	expo_push_token: str = Field(min_length=1)


class BulkStatusBody(WireModel):
	user_id: str = Field(min_length=1)
	user_ids: list[str] = Field(min_length=1, max_length=100)


class OptionsMixin(WireModel):
	generate: bool = True
	tone: str = "satirical"
	length: Literal["short", "long"] = "short"
	temperature: float = Field(default=0.7, ge=0.0, le=2.0)

	def options(self) -> NewsflashOptions:
		return NewsflashOptions(
			generate=self.generate,
			tone=self.tone,
			length=self.length,
			temperature=self.temperature,
		)


class CreatePostBody(OptionsMixin):
	raw_text: str = Field(min_length=1)
	user_id: str = Field(min_length=1)
	audience_type: Optional[AudienceType] = None
	target_friend_id: Optional[str] = None
	group_ids: Optional[list[str]] = None

	def audience(self) -> AudienceRequest:
		return AudienceRequest(
			audience_type=self.audience_type,
			target_friend_id=self.target_friend_id,
			group_ids=self.group_ids,
		)


class UpdatePostBody(OptionsMixin):
	raw_text: str = Field(min_length=1)
	user_id: str = Field(min_length=1)


class GenerateBody(OptionsMixin):
	raw_text: str = Field(min_length=1)
	user_id: str = Field(min_length=1)


class CommentBody(WireModel):
	user_id: str = Field(min_length=1)
	text: str


class CreateGroupBody(WireModel):
	name: str = Field(min_length=1, max_length=100)
	description: str = Field(default="", max_length=500)


class InviteBody(WireModel):
	user_id: str = Field(min_length=1)
	user_ids: list[str] = Field(min_length=1)


class TransferBody(WireModel):
	user_id: str = Field(min_length=1)
	new_owner_id: str = Field(min_length=1)


class MarkReadBody(WireModel):
	user_id: str = Field(min_length=1)
	notification_ids: list[str] = Field(min_length=1)


class UserProfile(WireModel):
	id: str
	full_name: str
	bio: str = ""
	avatar: Optional[str] = None
	followers_count: int = 0
	following_count: int = 0
	friends_count: int = 0
	created_at: datetime

	@classmethod
	def of(cls, user: User) -> "UserProfile":
		return cls(
			id=user.id,
			full_name=user.full_name,
			bio=user.bio,
			avatar=user.avatar,
			followers_count=user.followers_count,
			following_count=user.following_count,
			friends_count=user.friends_count,
			created_at=user.created_at,
		)


class PostView(WireModel):
	id: str
	user_id: str
	raw_text: str
	generated_text: str
	generation_method: str
	audience_type: AudienceType
	target_friend_id: Optional[str] = None
	group_ids: list[str] = Field(default_factory=list)
	visibility: str
	likes: list[str] = Field(default_factory=list)
	likes_count: int = 0
	comments_count: int = 0
	shares_count: int = 0
	timestamp: datetime
	created_at: datetime
	updated_at: datetime
	user: Optional[UserSummary] = None

	@classmethod
	def of(cls, post: Post, author: Optional[UserSummary] = None) -> "PostView":
		return cls(
			id=post.id,
			user_id=post.user_id,
			raw_text=post.raw_text,
			generated_text=post.generated_text,
			generation_method=post.generation_method,
			audience_type=post.audience_type,
			target_friend_id=post.target_friend_id,
			group_ids=post.group_ids,
			visibility=post.visibility,
			likes=sorted(post.likes),
			likes_count=post.likes_count,
			comments_count=post.comments_count,
			shares_count=post.shares_count,
			timestamp=post.timestamp,
			created_at=post.created_at,
			updated_at=post.updated_at,
			user=author,
		)
