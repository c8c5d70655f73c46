"""Offset pagination shared by every list endpoint."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Generic, Sequence, TypeVar

from newsflash.settings import settings

T = TypeVar("T")


def normalize(page: int | None, limit: int | None) -> tuple[int, int]:
	page_value = page if page and page > 0 else 1
	limit_value = limit if limit and limit > 0 else settings.page_limit_default
	return page_value, min(limit_value, settings.page_limit_max)


@dataclass(slots=True)
class Page(Generic[T]):
	items: list[T]
	total: int
	page: int
	limit: int

	@property
	def total_pages(self) -> int:
		return math.ceil(self.total / self.limit) if self.limit else 0

	def block(self, entity: str) -> dict[str, int | bool]:
		"""Wire pagination block, e.g. ``totalPosts`` for entity ``Posts``."""
		return {
			"page": self.page,
			"limit": self.limit,
			f"total{entity}": self.total,
			"totalPages": self.total_pages,
			"hasNextPage": self.page < self.total_pages,
			"hasPrevPage": self.page > 1,
		}


def paginate(items: Sequence[T], page: int | None = None, limit: int | None = None) -> Page[T]:
	page_value, limit_value = normalize(page, limit)
	start = (page_value - 1) * limit_value
	return Page(
		items=list(items[start : start + limit_value]),
		total=len(items),
		page=page_value,
		limit=limit_value,
	)
