"""FastAPI application entrypoint."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from newsflash.api import groups, notifications, ops, posts, social
from newsflash.api.errors import install_error_handlers
from newsflash.infra import postgres
from newsflash.infra.gateway import PostgresGateway
from newsflash.obs import init as obs_init
from newsflash.services import get_services, set_services
from newsflash.settings import settings

_LOG = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	services = get_services()
	if isinstance(services.gateway, PostgresGateway):
		await postgres.init_pool()
		await services.gateway.ensure_schema()
	worker_tasks: list[asyncio.Task] = []
	worker = None
	if settings.dispatch_worker_enabled:
		worker = services.dispatch_worker(batch_size=settings.dispatch_batch_size)
		worker_tasks.append(asyncio.create_task(worker.run_forever(), name="notification-dispatch"))
	_LOG.info(
		"app.started",
		extra={"storage": settings.storage_backend, "relationship_model": services.relationships.model},
	)
	try:
		yield
	finally:
		if worker is not None:
			worker.stop()
		if worker_tasks:
			for task in worker_tasks:
				task.cancel()
			await asyncio.gather(*worker_tasks, return_exceptions=True)
		await services.aclose()
		set_services(None)
		await postgres.close_pool()


app = FastAPI(title="Newsflash Social API", lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(settings.cors_allow_origins)
# Starlette disallows wildcard '*' with allow_credentials=True.
allow_credentials = "*" not in allow_origins
app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=allow_credentials,
	allow_methods=["*"],
	allow_headers=["*"],
)

obs_init(app)

app.include_router(social.router, tags=["social"])
app.include_router(posts.router, tags=["posts"])
app.include_router(groups.router, tags=["groups"])
app.include_router(notifications.router, tags=["notifications"])
app.include_router(ops.router, tags=["ops"])
