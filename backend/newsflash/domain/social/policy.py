"""Policy helpers and guard checks for follows and friendships."""

from __future__ import annotations

from typing import Optional

from newsflash.domain.errors import ConflictError, SelfReferenceError, ValidationError
from newsflash.domain.ids import is_valid_id
from newsflash.domain.models import FriendshipEdge

ALREADY_FRIENDS = "You are already friends with this user"
REQUEST_ALREADY_SENT = "Friend request already sent"
REQUEST_ALREADY_RECEIVED = "This user has already sent you a friend request. Accept it instead."


def guard_ids(*user_ids: str) -> None:
	for user_id in user_ids:
		if not is_valid_id(user_id):
			raise ValidationError("Invalid user ID format")


def guard_not_self(user_id: str, target_id: str, message: Optional[str] = None) -> None:
	if str(user_id) == str(target_id):
		raise SelfReferenceError(message)


def guard_model(active: str, required: str) -> None:
	if active != required:
		raise ConflictError("relationship_model_disabled")


def guard_can_request(edge: Optional[FriendshipEdge], sender_id: str) -> None:
	"""Reject a new request when any edge already exists for the pair."""
	if edge is None:
		return
	if edge.status == "accepted":
		raise ConflictError(ALREADY_FRIENDS)
	if edge.requester_id == sender_id:
		raise ConflictError(REQUEST_ALREADY_SENT)
	raise ConflictError(REQUEST_ALREADY_RECEIVED)


def guard_pending_from(edge: Optional[FriendshipEdge], requester_id: str, message: str) -> FriendshipEdge:
	if edge is None or edge.status != "pending" or edge.requester_id != requester_id:
		raise ConflictError(message)
	return edge


def guard_accepted(edge: Optional[FriendshipEdge]) -> FriendshipEdge:
	if edge is None or edge.status != "accepted":
		raise ConflictError("You are not friends with this user")
	return edge
