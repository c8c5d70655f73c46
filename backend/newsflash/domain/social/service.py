"""Relationship manager: follow toggles and the friendship state machine."""

from __future__ import annotations

import logging
from typing import Iterable, Literal, Optional

from newsflash.domain import ids
from newsflash.domain.errors import (
	AuthorizationError,
	ConflictError,
	NotFoundError,
	SelfReferenceError,
	ValidationError,
)
from newsflash.domain.models import FriendshipEdge, FriendshipState, User, utcnow
from newsflash.domain.notifications.dispatcher import is_valid_push_token
from newsflash.domain.notifications.outbox import OutboundNotification, Outbox
from newsflash.domain.pagination import Page, paginate
from newsflash.domain.social import policy
from newsflash.domain.social.models import (
	BulkStatusEntry,
	FollowResult,
	FriendRequestEntry,
	FriendSuggestion,
	FriendSummary,
)
from newsflash.infra.gateway.base import PersistenceGateway
from newsflash.infra.locks import KeyedLock
from newsflash.obs import metrics as obs_metrics
from newsflash.settings import settings

_LOG = logging.getLogger(__name__)

RequestDirection = Literal["received", "sent"]


def _state(edge: Optional[FriendshipEdge], viewer_id: str) -> FriendshipState:
	if edge is None:
		return FriendshipState(
			status="none",
			can_send_request=True,
			can_accept=False,
			can_cancel=False,
			are_friends=False,
			request_sent=False,
			request_received=False,
		)
	pending = edge.status == "pending"
	sent = pending and edge.requester_id == viewer_id
	received = pending and edge.requester_id != viewer_id
	return FriendshipState(
		status=edge.status,
		requester_id=edge.requester_id,
		can_send_request=False,
		can_accept=received,
		can_cancel=sent,
		are_friends=edge.status == "accepted",
		request_sent=sent,
		request_received=received,
		created_at=edge.created_at,
		updated_at=edge.updated_at,
	)


class RelationshipManager:
	"""Owns every relationship mutation and the denormalized counts that mirror it.

	The deployment picks one model (``friendship`` or ``follow``); operations of
	the other model raise ``ConflictError("relationship_model_disabled")``.
	Counts are recomputed from the authoritative sets or edges on every write.
	"""

	def __init__(
		self,
		gateway: PersistenceGateway,
		*,
		outbox: Optional[Outbox] = None,
		locks: Optional[KeyedLock] = None,
		model: Optional[str] = None,
	) -> None:
		self.gateway = gateway
		self.outbox = outbox or Outbox()
		self.locks = locks or KeyedLock()
		self.model = model or settings.relationship_model

	@property
	def follow_model(self) -> bool:
		return self.model == "follow"

	# users ---------------------------------------------------------------

	async def get_user(self, user_id: str, message: str = "User not found") -> User:
		policy.guard_ids(user_id)
		user = await self.gateway.get_user(user_id)
		if user is None:
			raise NotFoundError(message)
		return user

	async def login(self, full_name: str, email: str) -> tuple[User, bool]:
		"""Find the account for ``email`` or create it; returns (user, created)."""
		name = full_name.strip()
		address = email.strip().lower()
		if not name or not address:
			raise ValidationError("fullName and email are required")
		async with self.locks.hold(f"email:{address}"):
			async with self.gateway.transaction():
				user = await self.gateway.find_user_by_email(address)
				if user is not None:
					if user.full_name != name:
						user.full_name = name
						user.updated_at = utcnow()
						await self.gateway.update_user(user)
					return user, False
				user = User(id=ids.generate_id(ids.USER), full_name=name, email=address)
				await self.gateway.create_user(user)
		_LOG.info("user.created", extra={"user_id": user.id})
		return user, True

	async def register_push_token(self, user_id: str, token: str) -> User:
		if not is_valid_push_token(token):
			raise ValidationError("Invalid Expo push token format")
		async with self.locks.hold(user_id):
			async with self.gateway.transaction():
				user = await self.get_user(user_id)
				user.expo_push_token = token
				user.updated_at = utcnow()
				await self.gateway.update_user(user)
		return user

	async def update_profile(
		self,
		user_id: str,
		actor_id: str,
		*,
		full_name: Optional[str] = None,
		bio: Optional[str] = None,
	) -> User:
		"""Edit the caller's own name and bio; omitted fields stay as they are."""
		policy.guard_ids(user_id, actor_id)
		if user_id != actor_id:
			raise AuthorizationError("You can only update your own profile")
		if full_name is not None:
			full_name = full_name.strip()
			if not full_name or len(full_name) > settings.full_name_max:
				raise ValidationError(f"Full name must be between 1 and {settings.full_name_max} characters")
		if bio is not None:
			bio = bio.strip()
			if len(bio) > settings.bio_max:
				raise ValidationError(f"Bio must be {settings.bio_max} characters or less")
		async with self.locks.hold(user_id):
			async with self.gateway.transaction():
				user = await self.get_user(user_id)
				if full_name is not None:
					user.full_name = full_name
				if bio is not None:
					user.bio = bio
				user.updated_at = utcnow()
				await self.gateway.update_user(user)
		_LOG.info("user.profile_updated", extra={"user_id": user_id})
		return user

	async def list_users(self, *, page: int | None = None, limit: int | None = None) -> Page[User]:
		return paginate(await self.gateway.list_users(), page, limit)

	async def user_exists(self, email: str) -> bool:
		address = email.strip().lower()
		if not address:
			raise ValidationError("Email is required")
		return await self.gateway.find_user_by_email(address) is not None

	async def _pair(self, actor_id: str, target_id: str, *, target_missing: str, actor_missing: str) -> tuple[User, User]:
		policy.guard_ids(actor_id, target_id)
		target = await self.gateway.get_user(target_id)
		if target is None:
			raise NotFoundError(target_missing)
		actor = await self.gateway.get_user(actor_id)
		if actor is None:
			raise NotFoundError(actor_missing)
		return actor, target

	async def _notify(self, recipient: User, task: OutboundNotification) -> None:
		task.user_ids = [recipient.id]
		task.tokens = [recipient.expo_push_token] if recipient.expo_push_token else []
		await self.outbox.publish(task)

	# follow model --------------------------------------------------------

	async def toggle_follow(self, target_id: str, actor_id: str) -> FollowResult:
		policy.guard_model(self.model, "follow")
		policy.guard_not_self(actor_id, target_id, "You cannot follow yourself")
		async with self.locks.hold(actor_id, target_id):
			async with self.gateway.transaction():
				actor, target = await self._pair(
					actor_id,
					target_id,
					target_missing="Target user not found",
					actor_missing="Current user not found",
				)
				if actor_id in target.followers:
					target.followers.discard(actor_id)
					actor.following.discard(target_id)
					action = "unfollowed"
				else:
					target.followers.add(actor_id)
					actor.following.add(target_id)
					action = "followed"
				now = utcnow()
				for user in (actor, target):
					user.followers_count = len(user.followers)
					user.following_count = len(user.following)
					user.updated_at = now
				await self.gateway.update_user(target)
				await self.gateway.update_user(actor)
		obs_metrics.inc_follow_toggle(action)
		if action == "followed":
			await self._notify(
				target,
				OutboundNotification(
					type="new_follower",
					title="New Follower!",
					body=f"{actor.full_name} started following you",
					data={"type": "new_follower", "followerId": actor.id, "followerName": actor.full_name},
					channel_id="followers",
					priority="normal",
				),
			)
		return FollowResult(
			is_following=action == "followed",
			action=action,
			followers_count=target.followers_count,
			following_count=actor.following_count,
		)

	# friendship model ----------------------------------------------------

	async def _refresh_friend_counts(self, *users: User) -> None:
		now = utcnow()
		for user in users:
			user.friends_count = len(await self.gateway.list_edges(user.id, "accepted"))
			user.updated_at = now
			await self.gateway.update_user(user)

	async def send_request(self, from_id: str, to_id: str) -> FriendshipEdge:
		policy.guard_model(self.model, "friendship")
		policy.guard_not_self(from_id, to_id, "Cannot send friend request to yourself")
		async with self.locks.hold(from_id, to_id):
			async with self.gateway.transaction():
				sender, recipient = await self._pair(
					from_id,
					to_id,
					target_missing="Target user not found",
					actor_missing="Current user not found",
				)
				policy.guard_can_request(await self.gateway.get_edge(from_id, to_id), from_id)
				edge = await self.gateway.put_edge(FriendshipEdge.pending(from_id, to_id))
		obs_metrics.inc_relationship_transition("request")
		await self._notify(
			recipient,
			OutboundNotification(
				type="friend_request",
				title="New Friend Request!",
				body=f"{sender.full_name} sent you a friend request",
				data={
					"type": "friend_request",
					"requesterId": sender.id,
					"requesterName": sender.full_name,
					"targetUserId": recipient.id,
					"targetUserName": recipient.full_name,
				},
				channel_id="friend_requests",
				priority="normal",
			),
		)
		return edge

	async def accept(self, requester_id: str, accepter_id: str) -> FriendshipEdge:
		policy.guard_model(self.model, "friendship")
		policy.guard_not_self(accepter_id, requester_id, "Cannot accept your own friend request")
		async with self.locks.hold(requester_id, accepter_id):
			async with self.gateway.transaction():
				accepter, requester = await self._pair(
					accepter_id,
					requester_id,
					target_missing="Requester user not found",
					actor_missing="Current user not found",
				)
				edge = await self.gateway.get_edge(requester_id, accepter_id)
				if edge is None or edge.status != "pending":
					raise ConflictError("No pending friend request found")
				policy.guard_pending_from(edge, requester_id, "Cannot accept this request")
				edge.status = "accepted"
				edge.updated_at = utcnow()
				await self.gateway.put_edge(edge)
				await self._refresh_friend_counts(requester, accepter)
		obs_metrics.inc_relationship_transition("accept")
		await self._notify(
			requester,
			OutboundNotification(
				type="friend_request_accepted",
				title="Friend Request Accepted!",
				body=f"{accepter.full_name} accepted your friend request",
				data={
					"type": "friend_request_accepted",
					"accepterId": accepter.id,
					"accepterName": accepter.full_name,
				},
				channel_id="friend_requests",
				priority="normal",
			),
		)
		return edge

	async def reject(self, requester_id: str, rejecter_id: str) -> None:
		policy.guard_model(self.model, "friendship")
		policy.guard_not_self(rejecter_id, requester_id, "Cannot reject your own friend request")
		async with self.locks.hold(requester_id, rejecter_id):
			async with self.gateway.transaction():
				await self._pair(rejecter_id, requester_id, target_missing="User not found", actor_missing="User not found")
				policy.guard_pending_from(
					await self.gateway.get_edge(requester_id, rejecter_id),
					requester_id,
					"No pending friend request found to reject",
				)
				await self.gateway.delete_edge(requester_id, rejecter_id)
		obs_metrics.inc_relationship_transition("reject")

	async def cancel(self, target_id: str, canceler_id: str) -> None:
		policy.guard_model(self.model, "friendship")
		policy.guard_not_self(canceler_id, target_id, "Cannot cancel friend request to yourself")
		async with self.locks.hold(target_id, canceler_id):
			async with self.gateway.transaction():
				await self._pair(canceler_id, target_id, target_missing="User not found", actor_missing="User not found")
				policy.guard_pending_from(
					await self.gateway.get_edge(target_id, canceler_id),
					canceler_id,
					"No pending friend request found to cancel",
				)
				await self.gateway.delete_edge(target_id, canceler_id)
		obs_metrics.inc_relationship_transition("cancel")

	async def remove(self, a: str, b: str) -> None:
		policy.guard_model(self.model, "friendship")
		policy.guard_not_self(a, b, "Cannot unfriend yourself")
		async with self.locks.hold(a, b):
			async with self.gateway.transaction():
				actor, other = await self._pair(a, b, target_missing="User not found", actor_missing="User not found")
				policy.guard_accepted(await self.gateway.get_edge(a, b))
				await self.gateway.delete_edge(a, b)
				await self._refresh_friend_counts(actor, other)
		obs_metrics.inc_relationship_transition("remove")

	# queries -------------------------------------------------------------

	async def get_status(self, a: str, b: str) -> FriendshipState:
		"""Relationship as seen by ``a``; both sides always read the same edge."""
		policy.guard_ids(a, b)
		if a == b:
			raise SelfReferenceError("Cannot check friendship status with yourself")
		viewer = await self.get_user(a)
		await self.get_user(b)
		if not self.follow_model:
			return _state(await self.gateway.get_edge(a, b), a)
		if b in viewer.following and b in viewer.followers:
			edge = FriendshipEdge.pending(a, b)
			edge.status = "accepted"
			return _state(edge, a)
		if b in viewer.following:
			return _state(FriendshipEdge.pending(a, b), a)
		if b in viewer.followers:
			return _state(FriendshipEdge.pending(b, a), a)
		return _state(None, a)

	async def are_friends(self, a: str, b: str) -> bool:
		if a == b:
			return False
		return (await self.get_status(a, b)).are_friends

	async def friend_ids(self, user_id: str) -> list[str]:
		"""Accepted friends; under the follow model, mutual follows."""
		if self.follow_model:
			user = await self.gateway.get_user(user_id)
			if user is None:
				return []
			return sorted(user.followers & user.following)
		edges = await self.gateway.list_edges(user_id, "accepted")
		return [edge.other(user_id) for edge in edges]

	async def audience_ids(self, author_id: str) -> list[str]:
		"""Users a ``friends`` post reaches: accepted friends, or followers."""
		if self.follow_model:
			user = await self.gateway.get_user(author_id)
			return sorted(user.followers) if user else []
		return await self.friend_ids(author_id)

	async def _summaries(self, user_ids: Iterable[str]) -> list[FriendSummary]:
		users = await self.gateway.get_users(user_ids)
		return [
			FriendSummary(
				id=user.id,
				full_name=user.full_name,
				avatar=user.avatar,
				bio=user.bio,
				friends_count=user.friends_count,
			)
			for user in users
		]

	async def list_friends(self, user_id: str, *, page: int | None = None, limit: int | None = None) -> Page[FriendSummary]:
		await self.get_user(user_id)
		return paginate(await self._summaries(await self.friend_ids(user_id)), page, limit)

	async def list_followers(self, user_id: str, *, page: int | None = None, limit: int | None = None) -> Page[FriendSummary]:
		policy.guard_model(self.model, "follow")
		user = await self.get_user(user_id)
		return paginate(await self._summaries(sorted(user.followers)), page, limit)

	async def list_following(self, user_id: str, *, page: int | None = None, limit: int | None = None) -> Page[FriendSummary]:
		policy.guard_model(self.model, "follow")
		user = await self.get_user(user_id)
		return paginate(await self._summaries(sorted(user.following)), page, limit)

	async def list_requests(self, user_id: str, direction: RequestDirection = "received") -> list[FriendRequestEntry]:
		policy.guard_model(self.model, "friendship")
		if direction not in ("received", "sent"):
			raise ValidationError("Invalid type parameter. Use 'received' or 'sent'")
		await self.get_user(user_id)
		edges = [
			edge
			for edge in await self.gateway.list_edges(user_id, "pending")
			if (edge.requester_id == user_id) == (direction == "sent")
		]
		users = {user.id: user for user in await self.gateway.get_users(edge.other(user_id) for edge in edges)}
		entries = []
		for edge in edges:
			other = users.get(edge.other(user_id))
			if other is None:
				continue
			entries.append(
				FriendRequestEntry(
					id=other.id,
					full_name=other.full_name,
					avatar=other.avatar,
					bio=other.bio,
					friends_count=other.friends_count,
					request_date=edge.created_at,
				)
			)
		return entries

	async def mutual_friends(self, a: str, b: str, *, page: int | None = None, limit: int | None = None) -> Page[FriendSummary]:
		policy.guard_ids(a, b)
		first = await self.gateway.get_user(a)
		second = await self.gateway.get_user(b)
		if first is None or second is None:
			raise NotFoundError("One or both users not found")
		theirs = set(await self.friend_ids(b))
		mutual = [friend_id for friend_id in await self.friend_ids(a) if friend_id in theirs]
		return paginate(await self._summaries(mutual), page, limit)

	async def suggestions(self, user_id: str, *, limit: int = 10) -> list[FriendSuggestion]:
		"""Friends of friends, ranked by how many friends they share with ``user_id``."""
		await self.get_user(user_id)
		friends = set(await self.friend_ids(user_id))
		excluded = {user_id} | friends
		if not self.follow_model:
			excluded |= {edge.other(user_id) for edge in await self.gateway.list_edges(user_id, "pending")}
		mutual_counts: dict[str, int] = {}
		for friend_id in sorted(friends):
			for candidate in await self.friend_ids(friend_id):
				if candidate not in excluded:
					mutual_counts[candidate] = mutual_counts.get(candidate, 0) + 1
		ranked = sorted(mutual_counts, key=lambda candidate: (-mutual_counts[candidate], candidate))
		summaries = await self._summaries(ranked[: max(limit, 0)])
		return [
			FriendSuggestion(**summary.model_dump(), mutual_friends=mutual_counts[summary.id])
			for summary in summaries
		]

	async def bulk_status(self, user_id: str, target_ids: Iterable[str]) -> list[BulkStatusEntry]:
		await self.get_user(user_id)
		entries: list[BulkStatusEntry] = []
		for target_id in target_ids:
			if not ids.is_valid_id(target_id):
				entries.append(BulkStatusEntry(user_id=str(target_id), status="none", error="Invalid user ID"))
				continue
			if target_id == user_id:
				entries.append(BulkStatusEntry(user_id=target_id, status="none", error="Cannot check status with yourself"))
				continue
			state = await self.get_status(user_id, target_id)
			if state.are_friends:
				status = "friends"
			elif state.request_sent:
				status = "request_sent"
			elif state.request_received:
				status = "request_received"
			else:
				status = "none"
			entries.append(BulkStatusEntry(user_id=target_id, status=status))
		return entries
