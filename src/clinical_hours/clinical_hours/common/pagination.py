from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Generic, Sequence, TypeVar

from ..core.constants import MAX_PAGE_SIZE
from ..core.exceptions import ValidationError

T = TypeVar("T")


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def of(cls, page, limit, *, default_limit: int) -> "PageRequest":
        try:
            page_n = int(page) if page not in (None, "") else 1
            limit_n = int(limit) if limit not in (None, "") else default_limit
        except (TypeError, ValueError):
            raise ValidationError("page and limit must be integers")
        if page_n < 1 or limit_n < 1:
            raise ValidationError("page and limit must be positive")
        return cls(page=page_n, limit=min(limit_n, MAX_PAGE_SIZE))


@dataclass(frozen=True)
class Page(Generic[T]):
    items: Sequence[T] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def page_of(items: Sequence[T], *, total: int, request: PageRequest) -> Page[T]:
    """Wrap one already limited window of rows together with the unpaged total."""
    return Page(items=list(items), total=int(total), page=request.page, limit=request.limit)
