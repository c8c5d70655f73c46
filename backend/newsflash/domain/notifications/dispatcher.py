"""Best-effort push fan-out to Expo device tokens."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Protocol

import httpx
from pydantic import BaseModel, Field

from newsflash.domain.models import utcnow
from newsflash.obs import metrics as obs_metrics
from newsflash.settings import settings

_LOG = logging.getLogger(__name__)

_EXPO_TOKEN = re.compile(r"^Expo(nent)?PushToken\[[^\]]+\]$")


def is_valid_push_token(token: object) -> bool:
	return isinstance(token, str) and bool(_EXPO_TOKEN.match(token))


class DispatchResult(BaseModel):
	success: bool
	sent: int = 0
	failed: int = 0
	invalid_tokens: list[str] = Field(default_factory=list)
	errors: list[str] = Field(default_factory=list)
	tickets: list[dict[str, Any]] = Field(default_factory=list)
	message: Optional[str] = None


class PushTransport(Protocol):
	async def send(self, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
		...


@dataclass(slots=True)
class ExpoPushTransport:
	"""Posts message batches to the Expo push HTTP API."""

	http: httpx.AsyncClient
	url: str = settings.expo_push_url
	access_token: Optional[str] = settings.expo_access_token

	async def send(self, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
		headers = {"Accept": "application/json", "Content-Type": "application/json"}
		if self.access_token:
			headers["Authorization"] = f"Bearer {self.access_token}"
		response = await self.http.post(self.url, json=messages, headers=headers)
		response.raise_for_status()
		body = response.json()
		tickets = body.get("data") if isinstance(body, dict) else None
		if not isinstance(tickets, list):
			return [{"status": "ok"} for _ in messages]
		return tickets


def _chunks(items: list[dict[str, Any]], size: int) -> Iterable[list[dict[str, Any]]]:
	for start in range(0, len(items), size):
		yield items[start : start + size]


class NotificationDispatcher:
	"""Fans a message out to push tokens; failures are logged and reported, never raised."""

	def __init__(self, transport: PushTransport, *, chunk_size: int | None = None) -> None:
		self.transport = transport
		self.chunk_size = max(1, chunk_size or settings.push_chunk_size)

	def build_messages(
		self,
		tokens: list[str],
		title: str,
		body: str,
		data: dict[str, Any],
		options: dict[str, Any],
	) -> list[dict[str, Any]]:
		payload = {**data, "timestamp": utcnow().isoformat()}
		messages = []
		for token in tokens:
			message: dict[str, Any] = {
				"to": token,
				"title": title,
				"body": body,
				"data": payload,
				"sound": options.get("sound", "default"),
				"priority": options.get("priority", "high"),
				"channelId": options.get("channel_id") or options.get("channelId") or "default",
			}
			for key in ("badge", "ttl"):
				if options.get(key) is not None:
					message[key] = options[key]
			messages.append(message)
		return messages

	async def dispatch(
		self,
		tokens: Iterable[str],
		title: str,
		body: str,
		data: Optional[dict[str, Any]] = None,
		options: Optional[dict[str, Any]] = None,
	) -> DispatchResult:
		try:
			return await self._dispatch(tokens, title, body, data or {}, options or {})
		except Exception as exc:
			_LOG.exception("push.dispatch_failed")
			obs_metrics.push_dispatch("failed")
			return DispatchResult(success=False, errors=[str(exc)], message="Push dispatch failed")

	async def _dispatch(
		self,
		tokens: Iterable[str],
		title: str,
		body: str,
		data: dict[str, Any],
		options: dict[str, Any],
	) -> DispatchResult:
		candidates = list(dict.fromkeys(token for token in tokens if token))
		valid = [token for token in candidates if is_valid_push_token(token)]
		invalid = [token for token in candidates if not is_valid_push_token(token)]
		if not valid:
			obs_metrics.push_dispatch("skipped")
			return DispatchResult(
				success=False,
				invalid_tokens=invalid,
				message="No valid push tokens provided",
			)

		messages = self.build_messages(valid, title, body, data, options)
		result = DispatchResult(success=False, invalid_tokens=invalid)
		for chunk in _chunks(messages, self.chunk_size):
			try:
				tickets = await self.transport.send(chunk)
			except Exception as exc:
				_LOG.warning(
					"push.chunk_failed",
					extra={"chunk_size": len(chunk), "error": str(exc)},
				)
				result.failed += len(chunk)
				result.errors.append(str(exc))
				continue
			for ticket in tickets:
				result.tickets.append(ticket)
				if ticket.get("status") == "error":
					result.failed += 1
					result.errors.append(str(ticket.get("message") or "push_ticket_error"))
				else:
					result.sent += 1

		result.success = result.sent > 0
		if result.failed == 0:
			outcome = "ok"
		elif result.sent:
			outcome = "partial"
		else:
			outcome = "failed"
		result.message = f"{result.sent} of {len(valid)} notifications delivered"
		obs_metrics.push_dispatch(outcome)
		obs_metrics.push_messages(result.sent, result.failed)
		if outcome != "ok":
			_LOG.warning("push.dispatch_%s", outcome, extra={"sent": result.sent, "failed": result.failed})
		return result
