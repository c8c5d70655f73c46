"""Global error handlers rendering failures in the response envelope."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from newsflash.api.envelope import failure
from newsflash.api.request_id import get_request_id
from newsflash.domain.errors import NewsflashError
from newsflash.settings import settings

_LOG = logging.getLogger(__name__)

_HTTP_KINDS = {
	400: "bad_request",
	401: "unauthorized",
	403: "forbidden",
	404: "not_found",
	405: "method_not_allowed",
}


def install_error_handlers(app: FastAPI) -> None:
	@app.exception_handler(NewsflashError)
	async def domain_exc_handler(request: Request, exc: NewsflashError):  # type: ignore[override]
		rid = get_request_id(request)
		if exc.status_code >= 500:
			_LOG.error("request.failed", extra={"kind": exc.kind, "request_id": rid})
		payload = failure(exc.detail, exc.kind, request_id=rid)
		return JSONResponse(status_code=exc.status_code, content=payload)

	@app.exception_handler(StarletteHTTPException)
	async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
		rid = get_request_id(request)
		kind = _HTTP_KINDS.get(exc.status_code, "http_error")
		payload = failure(str(exc.detail), kind, request_id=rid)
		return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

	@app.exception_handler(RequestValidationError)
	async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
		rid = get_request_id(request)
		payload = failure(
			"Validation failed",
			"validation_error",
			errors=jsonable_encoder(exc.errors()),
			request_id=rid,
		)
		return JSONResponse(status_code=422, content=payload)

	@app.exception_handler(Exception)
	async def unhandled_exc_handler(request: Request, exc: Exception):  # type: ignore[override]
		rid = get_request_id(request)
		_LOG.exception("request.unhandled", extra={"request_id": rid})
		message = str(exc) if settings.is_dev() else "Something went wrong"
		payload = failure(message, "internal_error", request_id=rid)
		return JSONResponse(status_code=500, content=payload)
