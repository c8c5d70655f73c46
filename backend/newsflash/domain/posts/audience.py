"""Audience resolution: stored visibility, authorization and notification recipients."""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import Field, field_validator, model_validator

from newsflash.domain.errors import AuthorizationError, NotFoundError, ValidationError
from newsflash.domain.groups.service import GroupService
from newsflash.domain.models import VISIBILITY_BY_AUDIENCE, AudienceType, Post, User, WireModel
from newsflash.domain.social.service import RelationshipManager
from newsflash.infra.gateway.base import PersistenceGateway
from newsflash.settings import settings


class PublicAudience(WireModel):
	audience_type: Literal["public"] = "public"


class FriendsAudience(WireModel):
	audience_type: Literal["friends"] = "friends"


class FriendAudience(WireModel):
	audience_type: Literal["friend"] = "friend"
	target_friend_id: str = Field(min_length=1)


class GroupsAudience(WireModel):
	audience_type: Literal["groups"] = "groups"
	group_ids: list[str] = Field(min_length=1)

	@field_validator("group_ids")
	@classmethod
	def _bounded_unique(cls, value: list[str]) -> list[str]:
		if len(value) > settings.group_ids_max:
			raise ValueError(f"at most {settings.group_ids_max} groups are allowed")
		if len(set(value)) != len(value):
			raise ValueError("groupIds must be unique")
		return value


Audience = Annotated[
	Union[PublicAudience, FriendsAudience, FriendAudience, GroupsAudience],
	Field(discriminator="audience_type"),
]


class AudienceRequest(WireModel):
	"""Boundary form of a post's declared audience.

	``audienceType`` defaults to ``groups`` when ``groupIds`` is non-empty and to
	``public`` otherwise. Each audience accepts only its own fields.
	"""

	audience_type: Optional[AudienceType] = None
	target_friend_id: Optional[str] = None
	group_ids: Optional[list[str]] = None

	@model_validator(mode="after")
	def _check_shape(self) -> "AudienceRequest":
		self.to_audience()
		return self

	def effective_type(self) -> str:
		if self.audience_type:
			return self.audience_type
		return "groups" if self.group_ids else "public"

	def to_audience(self) -> Union[PublicAudience, FriendsAudience, FriendAudience, GroupsAudience]:
		kind = self.effective_type()
		if kind == "friend":
			if not self.target_friend_id:
				raise ValueError("targetFriendId is required when audienceType is 'friend'")
			if self.group_ids:
				raise ValueError("groupIds is not allowed when audienceType is 'friend'")
			return FriendAudience(target_friend_id=self.target_friend_id)
		if kind == "groups":
			if self.target_friend_id:
				raise ValueError("targetFriendId is not allowed when audienceType is 'groups'")
			if not self.group_ids:
				raise ValueError("groupIds is required when audienceType is 'groups'")
			return GroupsAudience(group_ids=self.group_ids)
		if self.target_friend_id or self.group_ids:
			raise ValueError(f"targetFriendId and groupIds are not allowed when audienceType is '{kind}'")
		return FriendsAudience() if kind == "friends" else PublicAudience()


class AudienceResolution(WireModel):
	audience_type: AudienceType
	visibility: str
	target_friend_id: Optional[str] = None
	group_ids: list[str] = Field(default_factory=list)
	recipient_ids: list[str] = Field(default_factory=list)
	tokens: list[str] = Field(default_factory=list)


class AudienceResolver:
	"""Computes visibility and recipients; every authorization check runs before any write."""

	def __init__(
		self,
		gateway: PersistenceGateway,
		relationships: RelationshipManager,
		groups: GroupService,
	) -> None:
		self.gateway = gateway
		self.relationships = relationships
		self.groups = groups

	async def resolve(self, audience: Audience | AudienceRequest, author: User) -> AudienceResolution:
		if isinstance(audience, AudienceRequest):
			try:
				audience = audience.to_audience()
			except ValueError as exc:
				raise ValidationError(str(exc)) from exc
		kind = audience.audience_type
		target_friend_id: Optional[str] = None
		group_ids: list[str] = []
		if kind == "public":
			# Friendship deployments send no targeted fan-out for public posts.
			recipients = await self.relationships.audience_ids(author.id) if self.relationships.follow_model else []
		elif kind == "friends":
			recipients = await self.relationships.audience_ids(author.id)
		elif kind == "friend":
			target_friend_id = audience.target_friend_id
			if target_friend_id == author.id or not await self._is_friend(author.id, target_friend_id):
				raise AuthorizationError("You can only post to your friends")
			recipients = [target_friend_id]
		else:
			group_ids = list(audience.group_ids)
			groups = await self.groups.validate_access(author.id, group_ids)
			members: dict[str, None] = {}
			for group in groups:
				if not group.settings.post_notifications:
					continue
				for member_id in sorted(group.members):
					members[member_id] = None
			recipients = list(members)

		recipient_ids = [user_id for user_id in dict.fromkeys(recipients) if user_id != author.id]
		return AudienceResolution(
			audience_type=kind,
			visibility=VISIBILITY_BY_AUDIENCE[kind],
			target_friend_id=target_friend_id,
			group_ids=group_ids,
			recipient_ids=recipient_ids,
			tokens=await self._tokens(recipient_ids),
		)

	async def _is_friend(self, author_id: str, target_id: str) -> bool:
		try:
			return await self.relationships.are_friends(author_id, target_id)
		except (ValidationError, NotFoundError):
			return False

	async def _tokens(self, user_ids: list[str]) -> list[str]:
		users = await self.gateway.get_users(user_ids)
		return list(dict.fromkeys(user.expo_push_token for user in users if user.expo_push_token))

	async def can_view(
		self,
		post: Post,
		viewer_id: Optional[str],
		*,
		friend_cache: Optional[dict[str, set[str]]] = None,
		member_of: Optional[set[str]] = None,
	) -> bool:
		"""Feed filter: authors always see their own posts."""
		if post.visibility == "public" or post.audience_type == "public":
			return True
		if viewer_id is None:
			return False
		if post.user_id == viewer_id:
			return True
		if post.audience_type == "friend":
			return post.target_friend_id == viewer_id
		if post.audience_type == "friends":
			cache = friend_cache if friend_cache is not None else {}
			if post.user_id not in cache:
				cache[post.user_id] = set(await self.relationships.audience_ids(post.user_id))
			return viewer_id in cache[post.user_id]
		if post.audience_type == "groups":
			if member_of is None:
				member_of = {
					group.id
					for group in await self.gateway.list_groups_for_user(viewer_id)
					if viewer_id in group.members
				}
			return any(group_id in member_of for group_id in post.group_ids)
		return False
