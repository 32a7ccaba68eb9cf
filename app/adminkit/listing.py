from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Generic, TypeVar

DEFAULT_SORT_BY = "id"
DEFAULT_ORDER_BY = "desc"
DEFAULT_PAGE = 1
DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100
# OFFSET is bound as a signed 64-bit integer.
MAX_OFFSET = 2**63 - 1

ORDER_DIRECTIONS = ("asc", "desc")

T = TypeVar("T")


def _parse_int(raw: Any, default: int) -> int:
    if raw is None:
        return default
    try:
        return int(str(raw).strip())
    except ValueError:
        return default


@dataclass(frozen=True)
class ListParams:
    """Query specification for list screens: filters, sort, page window."""

    name: str = ""
    status: str = ""
    type: str = ""
    sort_by: str = DEFAULT_SORT_BY
    order_by: str = DEFAULT_ORDER_BY
    page: int = DEFAULT_PAGE
    per_page: int = DEFAULT_PER_PAGE
    default_per_page: int = field(default=DEFAULT_PER_PAGE, compare=False, repr=False)
    max_per_page: int = field(default=MAX_PER_PAGE, compare=False, repr=False)

    @classmethod
    def from_args(
        cls,
        args: Mapping[str, Any],
        *,
        default_per_page: int = DEFAULT_PER_PAGE,
        max_per_page: int = MAX_PER_PAGE,
    ) -> "ListParams":
        """Build from query-string style args (``sortBy``/``sort_by`` both accepted)."""
        def _get(*keys: str) -> str:
            for k in keys:
                v = args.get(k)
                if v is not None:
                    return str(v).strip()
            return ""

        return cls(
            name=_get("name", "q"),
            status=_get("status"),
            type=_get("type"),
            sort_by=_get("sortBy", "sort_by"),
            order_by=_get("orderBy", "order_by"),
            page=_parse_int(args.get("page"), DEFAULT_PAGE),
            per_page=_parse_int(args.get("perPage", args.get("per_page")), default_per_page),
            default_per_page=default_per_page,
            max_per_page=max_per_page,
        ).normalized()

    def normalized(self) -> "ListParams":
        page = self.page if self.page > 0 else DEFAULT_PAGE
        per_page = self.per_page
        if per_page <= 0:
            per_page = self.default_per_page
        per_page = max(min(per_page, self.max_per_page), 1)
        page = min(page, MAX_OFFSET // per_page + 1)
        order_by = (self.order_by or "").strip().lower()
        if order_by not in ORDER_DIRECTIONS:
            order_by = DEFAULT_ORDER_BY
        sort_by = (self.sort_by or "").strip() or DEFAULT_SORT_BY
        return replace(self, page=page, per_page=per_page, order_by=order_by, sort_by=sort_by)

    @property
    def offset(self) -> int:
        return (max(self.page, 1) - 1) * self.per_page


def total_pages(total_items: int, per_page: int) -> int:
    if per_page <= 0:
        return 1
    return math.ceil(total_items / per_page)


@dataclass(frozen=True)
class PaginationMeta:
    current_page: int
    per_page: int
    total_items: int
    total_pages: int

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.current_page > 1


@dataclass(frozen=True)
class PaginatedResult(Generic[T]):
    items: list[T]
    meta: PaginationMeta

    @classmethod
    def build(cls, items: list[T], total: int, params: ListParams) -> "PaginatedResult[T]":
        return cls(
            items=list(items),
            meta=PaginationMeta(
                current_page=params.page,
                per_page=params.per_page,
                total_items=total,
                total_pages=total_pages(total, params.per_page),
            ),
        )

    def to_dict(self, serialize=None) -> dict[str, Any]:
        data = [serialize(i) for i in self.items] if serialize else list(self.items)
        return {"data": data, "meta": asdict(self.meta)}
