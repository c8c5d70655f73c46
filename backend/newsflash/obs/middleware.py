"""Request middleware: request id, log context, Prometheus request metrics."""

from __future__ import annotations

import time
from typing import Optional
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.routing import Match

from newsflash.obs import logging as obs_logging
from newsflash.obs import metrics
from newsflash.settings import settings

REQUEST_ID_HEADER = "X-Request-Id"

# Query parameters naming the acting or viewing user, in preference order.
_VIEWER_PARAMS = ("userId", "viewerId")


def _match_route(request: Request) -> tuple[Optional[str], dict[str, str]]:
	"""Resolve the route template and path params before the endpoint runs."""
	for route in request.app.router.routes:
		match, child_scope = route.matches(request.scope)
		if match is Match.FULL:
			return getattr(route, "path", None), dict(child_scope.get("path_params", {}))
	return None, {}


def _entity_context(path: str, params: dict[str, str]) -> dict[str, Optional[str]]:
	fields: dict[str, Optional[str]] = {}
	if path.startswith("/posts"):
		fields["post_id"] = params.get("post_id")
	elif path.startswith("/groups"):
		fields["group_id"] = params.get("group_id")
	return fields


class ObservabilityMiddleware(BaseHTTPMiddleware):
	def __init__(self, app, *, enabled: bool = True) -> None:
		super().__init__(app)
		self._enabled = enabled
		self._logger = obs_logging.get_logger("newsflash.http")

	async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
		if not settings.obs_enabled or not self._enabled:
			return await call_next(request)

		request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
		request.state.request_id = request_id
		template, params = _match_route(request)
		route = template or request.url.path
		viewer_id = next((request.query_params[name] for name in _VIEWER_PARAMS if name in request.query_params), None)
		tokens = obs_logging.bind_context(
			request_id=request_id,
			route=route,
			viewer_id=viewer_id,
			**_entity_context(route, params),
		)
		start = time.perf_counter()
		status_code = 500
		try:
			response = await call_next(request)
			status_code = response.status_code
		except Exception:
			self._logger.exception("http.unhandled", extra={"method": request.method})
			raise
		finally:
			elapsed = time.perf_counter() - start
			metrics.observe_request(route, request.method, status_code, elapsed)
			self._logger.info(
				"http.request",
				extra={"method": request.method, "status": status_code, "latency_ms": round(elapsed * 1000, 3)},
			)
			obs_logging.reset_context(tokens)

		response.headers.setdefault(REQUEST_ID_HEADER, request_id)
		return response


def install(app, *, enabled: bool = True) -> None:
	app.add_middleware(ObservabilityMiddleware, enabled=enabled)
