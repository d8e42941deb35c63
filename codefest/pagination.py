"""Page requests and paged results for list and search endpoints.

Pages are 0-based. ``size`` is bounded so a single request cannot pull the
whole table, and sort fields are checked against an allow-list before they
reach a query.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, Sequence, TypeVar
from urllib.parse import quote

from fastapi import HTTPException, Query, status

T = TypeVar("T")
U = TypeVar("U")

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 2000
# Offsets are bound as signed 64-bit integers by the database drivers
MAX_OFFSET = 2**63 - 1


@dataclass(frozen=True)
class SortOrder:
    field: str
    ascending: bool = True

    @property
    def as_text(self) -> str:
        return f"{self.field},{'asc' if self.ascending else 'desc'}"


@dataclass(frozen=True)
class Pageable:
    page: int = 0
    size: int = DEFAULT_PAGE_SIZE
    sort: tuple[SortOrder, ...] = ()

    @property
    def offset(self) -> int:
        return self.page * self.size


@dataclass
class Page(Generic[T]):
    content: List[T]
    pageable: Pageable
    total: int

    @property
    def total_pages(self) -> int:
        if self.total <= 0:
            return 0
        return ((self.total - 1) // self.pageable.size) + 1

    @property
    def number(self) -> int:
        return self.pageable.page

    @property
    def size(self) -> int:
        return self.pageable.size

    def has_next(self) -> bool:
        return self.number + 1 < self.total_pages

    def has_previous(self) -> bool:
        return self.number > 0

    def map(self, converter: Callable[[T], U]) -> "Page[U]":
        return Page(content=[converter(item) for item in self.content], pageable=self.pageable, total=self.total)


def parse_sort(raw_values: Optional[Sequence[str]], *, allowed_fields: set[str]) -> tuple[SortOrder, ...]:
    """Parse ``sort`` values of the form ``field`` or ``field,asc|desc``."""

    orders: list[SortOrder] = []
    for raw in raw_values or ():
        cleaned = raw.strip()
        if not cleaned:
            continue
        parts = [part.strip() for part in cleaned.split(",") if part.strip()]
        direction = "asc"
        if len(parts) > 1 and parts[-1].lower() in {"asc", "desc"}:
            direction = parts.pop().lower()
        for name in parts:
            if name not in allowed_fields:
                supported = ", ".join(sorted(allowed_fields))
                raise ValueError(f"Unsupported sort field '{name}'. Supported fields: {supported}")
            orders.append(SortOrder(field=name, ascending=direction == "asc"))
    return tuple(orders)


def normalize_pageable(
    *,
    page: int,
    size: Optional[int],
    sort: Optional[Sequence[str]],
    allowed_fields: set[str],
    max_page_size: int = MAX_PAGE_SIZE,
) -> Pageable:
    """Validate raw query values and build a :class:`Pageable`."""

    resolved_size = DEFAULT_PAGE_SIZE if size is None else size
    if page < 0:
        raise ValueError("page must be >= 0")
    if resolved_size < 1:
        raise ValueError("size must be >= 1")
    if resolved_size > max_page_size:
        raise ValueError(f"size must be <= {max_page_size}")
    if page * resolved_size > MAX_OFFSET:
        raise ValueError("page is out of range")
    return Pageable(page=page, size=resolved_size, sort=parse_sort(sort, allowed_fields=allowed_fields))


def pageable_dependency(allowed_fields: set[str]):
    """Build a FastAPI dependency reading ``page``, ``size`` and ``sort`` query parameters."""

    def _dependency(
        page: int = Query(0, description="Zero-based page index"),
        size: Optional[int] = Query(None, description="Page size"),
        sort: Optional[List[str]] = Query(None, description="Sort as field or field,asc|desc"),
    ) -> Pageable:
        try:
            return normalize_pageable(page=page, size=size, sort=sort, allowed_fields=allowed_fields)
        except ValueError as exc:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, str(exc)) from exc

    return _dependency


def _page_link(base_url: str, page: int, size: int, rel: str) -> str:
    return f'<{base_url}page={page}&size={size}>; rel="{rel}"'


def _link_header(page: Page, base_url: str) -> str:
    links: list[str] = []
    if page.has_next():
        links.append(_page_link(base_url, page.number + 1, page.size, "next"))
    if page.has_previous():
        links.append(_page_link(base_url, page.number - 1, page.size, "prev"))
    last_page = page.total_pages - 1 if page.total_pages > 0 else 0
    links.append(_page_link(base_url, last_page, page.size, "last"))
    links.append(_page_link(base_url, 0, page.size, "first"))
    return ",".join(links)


def generate_pagination_headers(page: Page, base_url: str) -> dict[str, str]:
    """``X-Total-Count`` and ``Link`` headers for a listing served at ``base_url``."""

    return {
        "X-Total-Count": str(page.total),
        "Link": _link_header(page, f"{base_url}?"),
    }


def generate_search_pagination_headers(query: str, page: Page, base_url: str) -> dict[str, str]:
    """Like :func:`generate_pagination_headers` but every link carries the search query."""

    escaped = quote(query, safe="")
    return {
        "X-Total-Count": str(page.total),
        "Link": _link_header(page, f"{base_url}?query={escaped}&"),
    }


__all__ = [
    "DEFAULT_PAGE_SIZE",
    "MAX_OFFSET",
    "MAX_PAGE_SIZE",
    "Page",
    "Pageable",
    "SortOrder",
    "generate_pagination_headers",
    "generate_search_pagination_headers",
    "normalize_pageable",
    "pageable_dependency",
    "parse_sort",
]
