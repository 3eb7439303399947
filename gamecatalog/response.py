"""Response envelopes for paginated listings."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable


def _serialise(item: Any) -> Any:
    to_dict = getattr(item, "to_dict", None)
    return to_dict() if callable(to_dict) else item


@dataclass
class Pagination:
    total: int
    last_page: int
    current_page: int

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "last_page": self.last_page,
            "current_page": self.current_page,
        }


@dataclass
class PageResponse:
    items: list
    pagination: Pagination
    message: str = field(default="nice")

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "data": {
                "items": [_serialise(item) for item in self.items],
                "pagination": self.pagination.to_dict(),
            },
        }


def success_pagination_response(
    items: Iterable, total: int, last_page: int, current_page: int
) -> PageResponse:
    """Wrap one page of items with its pagination details."""
    return PageResponse(
        items=list(items),
        pagination=Pagination(total=total, last_page=last_page, current_page=current_page),
    )