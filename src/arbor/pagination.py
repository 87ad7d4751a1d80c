"""Pagination over the root level of a (filtered) forest.

Only the top-level sequence is paged; a paged node always brings its whole
subtree along.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def total_pages_for(count: int, page_size: int) -> int:
    """Number of pages for *count* items: ``max(1, ceil(count / page_size))``.

    Examples:
        >>> total_pages_for(5, 2)
        3
        >>> total_pages_for(0, 10)
        1
    """
    return max(1, math.ceil(count / page_size))


def clamp_page(page: int, total_pages: int) -> int:
    """Clamp *page* into ``[1, total_pages]``."""
    return min(max(page, 1), total_pages)


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of root-level items.

    Attributes:
        items: The items on this page
        number: 1-based page number (after clamping)
        total_pages: Total number of pages
    """

    items: tuple[T, ...]
    number: int
    total_pages: int


def paginate(items: Sequence[T], page_size: int, page: int) -> Page[T]:
    """Slice *items* into the requested page, clamping the page number.

    Example:
        >>> paginate([1, 2, 3, 4, 5], 2, 10)
        Page(items=(5,), number=3, total_pages=3)
    """
    if page_size <= 0:
        raise ValueError(f"page_size must be positive, got {page_size}")
    total = total_pages_for(len(items), page_size)
    number = clamp_page(page, total)
    start = (number - 1) * page_size
    return Page(tuple(items[start : start + page_size]), number, total)


@dataclass(frozen=True)
class PageInfo:
    """Summary of the current page for status lines.

    ``start_item`` and ``end_item`` are 1-based and inclusive; both are 0
    when there are no items.
    """

    current_page: int
    total_pages: int
    page_size: int
    total_items: int
    start_item: int
    end_item: int

    def to_dict(self) -> dict[str, int]:
        """JSON-serializable dict."""
        return {
            "current_page": self.current_page,
            "total_pages": self.total_pages,
            "page_size": self.page_size,
            "total_items": self.total_items,
            "start_item": self.start_item,
            "end_item": self.end_item,
        }


class Paginator:
    """Page state: page size plus a current page that always stays in range.

    The item count is supplied on every recompute, so the paginator never
    holds on to the items themselves.

    Args:
        page_size: Items per page (must be positive)
        enabled: When False, ``page`` returns every item
    """

    def __init__(self, page_size: int = 10, *, enabled: bool = True) -> None:
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self._page_size = page_size
        self.enabled = enabled
        self._current_page = 1
        self._total_pages = 1

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def current_page(self) -> int:
        return self._current_page

    @property
    def total_pages(self) -> int:
        return self._total_pages

    def recompute(self, count: int) -> None:
        """Recompute total pages for *count* items and clamp the current page."""
        self._total_pages = total_pages_for(count, self._page_size)
        self._current_page = clamp_page(self._current_page, self._total_pages)

    def page(self, items: Sequence[T]) -> list[T]:
        """Return the current page of *items*, recomputing first."""
        if not self.enabled:
            return list(items)
        self.recompute(len(items))
        start = (self._current_page - 1) * self._page_size
        return list(items[start : start + self._page_size])

    def set_page_size(self, page_size: int) -> bool:
        """Change the page size and go back to page 1.

        A non-positive size is rejected: nothing changes and False is returned.
        """
        if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size <= 0:
            logger.warning("Page size must be a positive integer, got %r; keeping %d", page_size, self._page_size)
            return False
        self._page_size = page_size
        self._current_page = 1
        return True

    def go_to_page(self, page: int, count: int) -> int:
        """Move to *page*, clamped into range. Returns the resulting page."""
        self.recompute(count)
        if page < 1 or page > self._total_pages:
            logger.debug("Page %d out of range 1..%d, clamping", page, self._total_pages)
        self._current_page = clamp_page(page, self._total_pages)
        return self._current_page

    def next_page(self, count: int) -> bool:
        """Advance one page. Returns False when already on the last page."""
        self.recompute(count)
        if self._current_page >= self._total_pages:
            return False
        self._current_page += 1
        return True

    def previous_page(self, count: int) -> bool:
        """Go back one page. Returns False when already on the first page."""
        self.recompute(count)
        if self._current_page <= 1:
            return False
        self._current_page -= 1
        return True

    def first_page(self) -> None:
        self._current_page = 1

    def last_page(self, count: int) -> None:
        self.recompute(count)
        self._current_page = self._total_pages

    def reset(self) -> None:
        """Back to page 1 (used after a new search or data replacement)."""
        self._current_page = 1

    def info(self, count: int) -> PageInfo:
        """Page summary for *count* items."""
        self.recompute(count)
        if count == 0:
            start = end = 0
        else:
            start = (self._current_page - 1) * self._page_size + 1
            end = min(self._current_page * self._page_size, count)
        return PageInfo(
            current_page=self._current_page,
            total_pages=self._total_pages,
            page_size=self._page_size,
            total_items=count,
            start_item=start,
            end_item=end,
        )
