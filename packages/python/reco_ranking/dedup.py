from __future__ import annotations

from typing import Iterable

from reco_core.types import DedupKey

from .types import Candidate


def dedupe_by_title_creator(
    candidates: Iterable[Candidate],  # in final rank order
    *,
    seen: set[DedupKey] | None = None,
) -> tuple[list[Candidate], list[dict]]:
    """
    Keep the first occurrence of each case-insensitive (title, creator) pair.

    `seen` is updated in place so several candidate lists (primary and fallback
    stages) can share one identity set.
    """
    seen = seen if seen is not None else set()
    out: list[Candidate] = []
    pruned: list[dict] = []
    for c in candidates:
        k = c.key
        if k in seen:
            pruned.append({"item_id": c.id, "title": c.item.title, "source": c.source.value})
            continue
        seen.add(k)
        out.append(c)
    return out, pruned
