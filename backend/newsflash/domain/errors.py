"""Error taxonomy shared by the relationship, audience, engagement and group services."""

from __future__ import annotations

from fastapi import status


class NewsflashError(Exception):
	"""Base class for domain errors carrying a status code and a machine-checkable kind."""

	status_code: int = status.HTTP_400_BAD_REQUEST
	kind: str = "error"
	detail: str = "Request failed"

	def __init__(self, detail: str | None = None) -> None:
		super().__init__(detail or self.detail)
		if detail:
			self.detail = detail


class ValidationError(NewsflashError):
	"""Malformed or missing input that schema validation did not catch."""

	status_code = status.HTTP_400_BAD_REQUEST
	kind = "validation_error"
	detail = "Invalid input"


class SelfReferenceError(ValidationError):
	"""Raised when an actor targets themselves with a relationship operation."""

	kind = "self_reference"
	detail = "You cannot perform this action on yourself"


class NotFoundError(NewsflashError):
	status_code = status.HTTP_404_NOT_FOUND
	kind = "not_found"
	detail = "Not found"


class ConflictError(NewsflashError):
	"""Operation is not valid in the current relationship or engagement state."""

	status_code = status.HTTP_400_BAD_REQUEST
	kind = "conflict"
	detail = "Conflicting state"


class AuthorizationError(NewsflashError):
	status_code = status.HTTP_403_FORBIDDEN
	kind = "forbidden"
	detail = "Access denied"


class InternalError(NewsflashError):
	status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
	kind = "internal_error"
	detail = "Something went wrong"
