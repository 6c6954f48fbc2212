"""Deterministic page slicing with an enforced page-size cap."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Generic, Sequence, TypeVar

from services.airquality.errors import InputError

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    total_count: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size) if self.total_count else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


def paginate(
    items: Sequence[T],
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    max_page_size: int = MAX_PAGE_SIZE,
) -> Page[T]:
    """
    Slice one page out of the full filtered set.

    page < 1 and page_size < 1 are caller errors; page_size above the cap is
    clamped. A page past the end is empty but total_count stays correct.
    """
    if page < 1:
        raise InputError(f"page must be >= 1, got {page}")
    if page_size < 1:
        raise InputError(f"page_size must be >= 1, got {page_size}")

    size = min(page_size, max_page_size)
    start = (page - 1) * size
    return Page(items=list(items[start:start + size]), total_count=len(items), page=page, page_size=size)
