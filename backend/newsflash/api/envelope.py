"""Response envelope shared by every endpoint."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel

from newsflash.domain.pagination import Page


def _timestamp() -> str:
	return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _wire(value: Any) -> Any:
	if isinstance(value, BaseModel):
		return value.model_dump(mode="json", by_alias=True)
	if isinstance(value, (list, tuple)):
		return [_wire(item) for item in value]
	if isinstance(value, dict):
		return {key: _wire(item) for key, item in value.items()}
	return value


def ok(message: str, data: Any = None, **extra: Any) -> dict[str, Any]:
	payload: dict[str, Any] = {"success": True, "message": message, "data": _wire(data)}
	for key, value in extra.items():
		payload[key] = _wire(value)
	payload["timestamp"] = _timestamp()
	return payload


def paged(message: str, page: Page[Any], entity: str, data: Optional[Any] = None, **extra: Any) -> dict[str, Any]:
	return ok(message, page.items if data is None else data, pagination=page.block(entity), **extra)


def failure(message: str, error: str, **extra: Any) -> dict[str, Any]:
	payload: dict[str, Any] = {"success": False, "message": message, "error": error}
	payload.update(extra)
	payload["timestamp"] = _timestamp()
	return payload
