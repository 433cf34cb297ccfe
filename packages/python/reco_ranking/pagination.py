from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Sequence, TypeVar

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    items: list[T]
    offset: int
    limit: int
    has_more: bool


def paginate(seq: Sequence[T], offset: int, limit: int) -> Page[T]:
    """Slice [offset, offset+limit); has_more iff anything exists past the slice."""
    offset = max(0, int(offset))
    limit = max(0, int(limit))
    return Page(
        items=list(seq[offset : offset + limit]),
        offset=offset,
        limit=limit,
        has_more=len(seq) > offset + limit,
    )
