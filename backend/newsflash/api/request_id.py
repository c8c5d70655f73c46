"""Request ID helpers for endpoints and error handlers."""

from __future__ import annotations

from typing import Optional

from fastapi import Request

from newsflash.obs import logging as obs_logging

REQUEST_ID_ATTR = "request_id"


def get_request_id(request: Optional[Request] = None, default: str = "unknown") -> str:
	"""Return the request id bound to the request state or the logging context."""
	if request is not None:
		rid = getattr(request.state, REQUEST_ID_ATTR, None)
		if rid:
			return rid
	return obs_logging.current_request_id() or default
