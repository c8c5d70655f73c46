"""Group membership lifecycle: creation, invitations, leaving and ownership transfer."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional

from newsflash.domain import ids
from newsflash.domain.errors import AuthorizationError, NotFoundError, ValidationError
from newsflash.domain.models import Group, User, UserSummary, WireModel, utcnow
from newsflash.domain.notifications.outbox import OutboundNotification, Outbox
from newsflash.infra.gateway.base import PersistenceGateway
from newsflash.infra.locks import KeyedLock
from newsflash.obs import metrics as obs_metrics
from newsflash.settings import settings

_LOG = logging.getLogger(__name__)


class GroupCard(WireModel):
	id: str
	name: str
	description: str
	member_count: int
	created_at: datetime


class GroupDetail(GroupCard):
	owner_id: str
	members: list[UserSummary]
	invite_count: int
	updated_at: datetime


class UserGroups(WireModel):
	owned: list[GroupCard]
	member: list[GroupCard]
	invited: list[GroupCard]


class InviteResult(WireModel):
	group_id: str
	invited_users: list[str]
	skipped_users: list[str]


class LeaveResult(WireModel):
	group_id: str
	remaining_members: int
	deleted: bool


def _card(group: Group) -> GroupCard:
	return GroupCard(
		id=group.id,
		name=group.name,
		description=group.description,
		member_count=len(group.members),
		created_at=group.created_at,
	)


class GroupService:
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

	async def _user(self, user_id: str, message: str = "User not found") -> User:
		if not ids.is_valid_id(user_id):
			raise ValidationError("Invalid user ID format")
		user = await self.gateway.get_user(user_id)
		if user is None:
			raise NotFoundError(message)
		return user

	async def _group(self, group_id: str) -> Group:
		group = await self.gateway.get_group(group_id)
		if group is None:
			raise NotFoundError("Group not found")
		return group

	async def create_group(self, owner_id: str, name: str, description: str = "") -> Group:
		title = name.strip()
		if not title or len(title) > settings.group_name_max:
			raise ValidationError(f"Group name must be 1-{settings.group_name_max} characters")
		await self._user(owner_id)
		group = Group(
			id=ids.generate_id(ids.GROUP),
			name=title,
			description=description.strip(),
			owner_id=owner_id,
			members={owner_id},
		)
		async with self.gateway.transaction():
			await self.gateway.create_group(group)
		obs_metrics.inc_group_event("created")
		return group

	async def invite(self, group_id: str, inviter_id: str, user_ids: Iterable[str]) -> InviteResult:
		requested = list(dict.fromkeys(user_ids))
		if not requested:
			raise ValidationError("userIds must be a non-empty list")
		async with self.locks.hold(group_id):
			async with self.gateway.transaction():
				group = await self._group(group_id)
				if inviter_id not in group.members:
					raise AuthorizationError("Access denied")
				inviter = await self._user(inviter_id, "Inviter not found")
				invitees: list[User] = []
				skipped: list[str] = []
				for user_id in requested:
					user = await self._user(user_id)
					if user_id in group.members or user_id in group.invites:
						skipped.append(user_id)
						continue
					invitees.append(user)
				for user in invitees:
					group.invites.add(user.id)
				group.updated_at = utcnow()
				await self.gateway.update_group(group)
		obs_metrics.inc_group_event("invited")
		for user in invitees:
			await self.outbox.publish(
				OutboundNotification(
					type="group_invitation",
					title="Group Invitation!",
					body=f'{inviter.full_name} invited you to join "{group.name}"',
					data={
						"type": "group_invitation",
						"groupId": group.id,
						"groupName": group.name,
						"inviterId": inviter.id,
						"inviterName": inviter.full_name,
						"invitedUserId": user.id,
					},
					user_ids=[user.id],
					tokens=[user.expo_push_token] if user.expo_push_token else [],
					channel_id="group_invitations",
					priority="normal",
				)
			)
		return InviteResult(group_id=group.id, invited_users=[user.id for user in invitees], skipped_users=skipped)

	async def accept_invite(self, group_id: str, user_id: str) -> Group:
		async with self.locks.hold(group_id):
			async with self.gateway.transaction():
				group = await self._group(group_id)
				if user_id not in group.invites:
					raise AuthorizationError("No invitation found")
				member = await self._user(user_id)
				group.invites.discard(user_id)
				group.members.add(user_id)
				group.updated_at = utcnow()
				await self.gateway.update_group(group)
				owner = await self.gateway.get_user(group.owner_id)
		obs_metrics.inc_group_event("joined")
		if owner is not None and group.settings.membership_notifications:
			await self.outbox.publish(
				OutboundNotification(
					type="group_invitation_accepted",
					title="Group Invitation Accepted!",
					body=f'{member.full_name} joined "{group.name}"',
					data={
						"type": "group_invitation_accepted",
						"groupId": group.id,
						"groupName": group.name,
						"newMemberId": member.id,
						"newMemberName": member.full_name,
						"ownerId": owner.id,
					},
					user_ids=[owner.id],
					tokens=[owner.expo_push_token] if owner.expo_push_token else [],
					channel_id="group_invitations",
					priority="normal",
				)
			)
		return group

	async def decline_invite(self, group_id: str, user_id: str) -> Group:
		async with self.locks.hold(group_id):
			async with self.gateway.transaction():
				group = await self._group(group_id)
				if user_id not in group.invites:
					raise AuthorizationError("No invitation found")
				group.invites.discard(user_id)
				group.updated_at = utcnow()
				await self.gateway.update_group(group)
		obs_metrics.inc_group_event("declined")
		return group

	async def leave(self, group_id: str, user_id: str) -> LeaveResult:
		"""Remove a member; the owner may only leave as the last member, which deletes the group."""
		async with self.locks.hold(group_id):
			async with self.gateway.transaction():
				group = await self._group(group_id)
				if user_id not in group.members:
					raise AuthorizationError("Not a member")
				if user_id == group.owner_id:
					if len(group.members) > 1:
						raise AuthorizationError("Group owner must transfer ownership before leaving")
					await self.gateway.delete_group(group_id)
					obs_metrics.inc_group_event("deleted")
					return LeaveResult(group_id=group_id, remaining_members=0, deleted=True)
				group.members.discard(user_id)
				group.updated_at = utcnow()
				await self.gateway.update_group(group)
		obs_metrics.inc_group_event("left")
		return LeaveResult(group_id=group_id, remaining_members=len(group.members), deleted=False)

	async def transfer_ownership(self, group_id: str, owner_id: str, new_owner_id: str) -> Group:
		async with self.locks.hold(group_id):
			async with self.gateway.transaction():
				group = await self._group(group_id)
				if owner_id != group.owner_id:
					raise AuthorizationError("Only the group owner can transfer ownership")
				if new_owner_id not in group.members:
					raise ValidationError("New owner must be a member of the group")
				group.owner_id = new_owner_id
				group.updated_at = utcnow()
				await self.gateway.update_group(group)
		obs_metrics.inc_group_event("transferred")
		return group

	async def get_group(self, group_id: str, viewer_id: str) -> GroupDetail:
		group = await self._group(group_id)
		if viewer_id not in group.members and viewer_id not in group.invites:
			raise AuthorizationError("Access denied")
		members = await self.gateway.get_users(sorted(group.members))
		return GroupDetail(
			**_card(group).model_dump(),
			owner_id=group.owner_id,
			members=[member.summary() for member in members],
			invite_count=len(group.invites),
			updated_at=group.updated_at,
		)

	async def list_user_groups(self, user_id: str) -> UserGroups:
		await self._user(user_id)
		groups = await self.gateway.list_groups_for_user(user_id)
		return UserGroups(
			owned=[_card(group) for group in groups if group.owner_id == user_id],
			member=[_card(group) for group in groups if user_id in group.members and group.owner_id != user_id],
			invited=[_card(group) for group in groups if user_id in group.invites],
		)

	async def require_member(self, group_id: str, user_id: str) -> Group:
		group = await self._group(group_id)
		if user_id not in group.members:
			raise AuthorizationError("Access denied")
		return group

	async def validate_access(self, user_id: str, group_ids: Iterable[str]) -> list[Group]:
		"""All-or-nothing: every listed group must exist and contain ``user_id``."""
		groups: list[Group] = []
		for group_id in group_ids:
			group = await self.gateway.get_group(group_id)
			if group is None or user_id not in group.members:
				raise AuthorizationError("Access denied to one or more groups")
			groups.append(group)
		return groups
