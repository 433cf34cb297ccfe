from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from pydantic import ValidationError
from reco_core.types import InteractionRecord

from .schemas import InteractionRow

log = logging.getLogger(__name__)

MAX_REPORTED_ERRORS = 10


@dataclass
class ParsedBatch:
    records: list[InteractionRecord] = field(default_factory=list)
    received: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


def _describe(e: ValidationError) -> str:
    parts = []
    for err in e.errors()[:3]:
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


def parse_interaction_rows(rows: Iterable[Any]) -> ParsedBatch:
    """
    Validate raw rows into InteractionRecords. Malformed rows are skipped and counted,
    never failing the batch.
    """
    batch = ParsedBatch()
    for idx, row in enumerate(rows):
        batch.received += 1
        if not isinstance(row, Mapping):
            batch.skipped += 1
            if len(batch.errors) < MAX_REPORTED_ERRORS:
                batch.errors.append(f"row {idx}: not an object")
            continue
        try:
            batch.records.append(InteractionRow.model_validate(dict(row)).to_record())
        except ValidationError as e:
            batch.skipped += 1
            if len(batch.errors) < MAX_REPORTED_ERRORS:
                batch.errors.append(f"row {idx}: {_describe(e)}")

    if batch.skipped:
        log.warning(
            "Skipped %d of %d interaction rows during validation",
            batch.skipped,
            batch.received,
        )
    return batch
