"""Process-wide service wiring shared by the API routers and the dispatch worker."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import httpx

from newsflash.domain.groups.service import GroupService
from newsflash.domain.notifications.dispatcher import ExpoPushTransport, NotificationDispatcher, PushTransport
from newsflash.domain.notifications.outbox import Outbox
from newsflash.domain.notifications.service import NotificationService
from newsflash.domain.notifications.worker import DispatchWorker
from newsflash.domain.posts.audience import AudienceResolver
from newsflash.domain.posts.engagement import EngagementTracker
from newsflash.domain.posts.newsflash import ChatCompletionNewsflash, NewsflashWriter
from newsflash.domain.posts.service import PostService
from newsflash.domain.social.service import RelationshipManager
from newsflash.infra.gateway import PersistenceGateway, build_gateway
from newsflash.infra.locks import KeyedLock
from newsflash.settings import settings


@dataclass
class Services:
	gateway: PersistenceGateway
	relationships: RelationshipManager
	groups: GroupService
	resolver: AudienceResolver
	posts: PostService
	engagement: EngagementTracker
	notifications: NotificationService
	dispatcher: NotificationDispatcher
	outbox: Outbox
	http_clients: list[httpx.AsyncClient] = field(default_factory=list)

	def dispatch_worker(self, **kwargs) -> DispatchWorker:
		return DispatchWorker(notifications=self.notifications, dispatcher=self.dispatcher, **kwargs)

	async def aclose(self) -> None:
		for client in self.http_clients:
			await client.aclose()
		self.http_clients.clear()


def build_services(
	gateway: Optional[PersistenceGateway] = None,
	*,
	transport: Optional[PushTransport] = None,
	writer: Optional[NewsflashWriter] = None,
	relationship_model: Optional[str] = None,
) -> Services:
	gateway = gateway or build_gateway()
	locks = KeyedLock()
	outbox = Outbox()
	clients: list[httpx.AsyncClient] = []

	if transport is None:
		push_http = httpx.AsyncClient(timeout=settings.push_timeout_seconds)
		clients.append(push_http)
		transport = ExpoPushTransport(http=push_http)
	if writer is None:
		remote = None
		if settings.newsflash_remote_enabled and settings.openai_api_key:
			chat_http = httpx.AsyncClient(timeout=settings.newsflash_timeout_seconds)
			clients.append(chat_http)
			remote = ChatCompletionNewsflash(http=chat_http, api_key=settings.openai_api_key)
		writer = NewsflashWriter(remote)

	relationships = RelationshipManager(gateway, outbox=outbox, locks=locks, model=relationship_model)
	groups = GroupService(gateway, outbox=outbox, locks=locks)
	resolver = AudienceResolver(gateway, relationships, groups)
	return Services(
		gateway=gateway,
		relationships=relationships,
		groups=groups,
		resolver=resolver,
		posts=PostService(
			gateway,
			relationships=relationships,
			groups=groups,
			resolver=resolver,
			writer=writer,
			outbox=outbox,
			locks=locks,
		),
		engagement=EngagementTracker(gateway, outbox=outbox, locks=locks),
		notifications=NotificationService(gateway),
		dispatcher=NotificationDispatcher(transport),
		outbox=outbox,
		http_clients=clients,
	)


_services: Optional[Services] = None


def get_services() -> Services:
	global _services
	if _services is None:
		_services = build_services()
	return _services


def set_services(services: Optional[Services]) -> None:
	global _services
	_services = services
