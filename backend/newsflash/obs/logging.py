"""JSON logging with request- and entity-scoped context for the newsflash service."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

from newsflash.settings import settings

_LOGGER_NAME = "newsflash"

# Every log line carries whichever of these are bound for the current task.
CONTEXT_FIELDS = (
	"request_id",
	"route",
	"viewer_id",
	"post_id",
	"group_id",
	"notification_type",
)
_CONTEXT: Dict[str, ContextVar[Optional[str]]] = {
	name: ContextVar(f"newsflash_log_{name}", default=None) for name in CONTEXT_FIELDS
}

# Push tokens and account emails never reach the log stream.
_REDACTED_KEYS = frozenset({"email", "expo_push_token", "token", "tokens", "api_key", "authorization"})

_MAX_TEXT = 200
_MAX_ITEMS = 20

# Attributes every LogRecord has; anything else arrived through ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def bind_context(**fields: Optional[str]) -> Dict[str, Token]:
	"""Bind the given context fields and return the tokens needed to undo it."""
	tokens: Dict[str, Token] = {}
	for name, value in fields.items():
		if value is None:
			continue
		if name not in _CONTEXT:
			raise KeyError(f"unknown log context field: {name}")
		tokens[name] = _CONTEXT[name].set(str(value))
	return tokens


def reset_context(tokens: Dict[str, Token]) -> None:
	for name, token in tokens.items():
		_CONTEXT[name].reset(token)


@contextmanager
def log_context(**fields: Optional[str]) -> Iterator[None]:
	tokens = bind_context(**fields)
	try:
		yield
	finally:
		reset_context(tokens)


def current_context() -> Dict[str, str]:
	return {name: var.get() for name, var in _CONTEXT.items() if var.get()}  # type: ignore[misc]


def current_request_id() -> Optional[str]:
	return _CONTEXT["request_id"].get()


def scrub(key: str, value: Any) -> Any:
	"""Redact sensitive keys and clip long text or collections."""
	if key.lower() in _REDACTED_KEYS:
		return "[redacted]"
	if isinstance(value, str):
		return value if len(value) <= _MAX_TEXT else value[:_MAX_TEXT] + "..."
	if isinstance(value, dict):
		return {str(k): scrub(str(k), v) for k, v in list(value.items())[:_MAX_ITEMS]}
	if isinstance(value, (list, tuple, set, frozenset)):
		items = sorted(value) if isinstance(value, (set, frozenset)) else list(value)
		clipped = [scrub("", item) for item in items[:_MAX_ITEMS]]
		if len(items) > _MAX_ITEMS:
			clipped.append(f"+{len(items) - _MAX_ITEMS} more")
		return clipped
	return value


class JSONLogFormatter(logging.Formatter):
	"""One JSON object per line: event name, level, service identity, bound context, extras."""

	def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (match logging api)
		payload: Dict[str, Any] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"event": record.getMessage(),
			"logger": record.name,
			"service": settings.service_name,
			"env": settings.environment,
			"commit": settings.git_commit,
			"relationship_model": settings.relationship_model,
		}
		payload.update(current_context())
		for key, value in record.__dict__.items():
			if key not in _RECORD_ATTRS:
				payload[key] = scrub(key, value)
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		return json.dumps(payload, separators=(",", ":"), default=str)


def configure_logging() -> logging.Logger:
	"""Route the root logger through the JSON formatter (or a plain one when LOG_JSON is off)."""
	root = logging.getLogger()
	root.handlers.clear()
	handler = logging.StreamHandler()
	if settings.obs_log_json:
		handler.setFormatter(JSONLogFormatter())
	else:
		handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
	root.addHandler(handler)
	root.setLevel(settings.obs_log_level.upper())
	return logging.getLogger(_LOGGER_NAME)


def get_logger(name: Optional[str] = None) -> logging.Logger:
	return logging.getLogger(name or _LOGGER_NAME)
