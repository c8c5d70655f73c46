"""Response models for relationship queries."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from newsflash.domain.models import WireModel


class FollowResult(WireModel):
	is_following: bool
	action: Literal["followed", "unfollowed"]
	followers_count: int
	following_count: int


class FriendSummary(WireModel):
	id: str
	full_name: str
	avatar: Optional[str] = None
	bio: str = ""
	friends_count: int = 0


class FriendRequestEntry(FriendSummary):
	request_date: datetime


class FriendSuggestion(FriendSummary):
	mutual_friends: int


class BulkStatusEntry(WireModel):
	user_id: str
	status: Literal["none", "friends", "request_sent", "request_received"]
	error: Optional[str] = None
