"""Persistence gateway selection."""

from __future__ import annotations

from newsflash.infra.gateway.base import PersistenceGateway
from newsflash.infra.gateway.memory import MemoryGateway
from newsflash.infra.gateway.postgres import PostgresGateway
from newsflash.settings import settings


def build_gateway() -> PersistenceGateway:
	if settings.storage_backend == "postgres":
		return PostgresGateway()
	return MemoryGateway()


__all__ = ["PersistenceGateway", "MemoryGateway", "PostgresGateway", "build_gateway"]
