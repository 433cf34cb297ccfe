from __future__ import annotations

import logging
from typing import Sequence

import anyio

from reco_agent.explanation.explanation_agent import Explanation
from reco_agent.explanation.explanation_prompts import build_fallback_explanation
from reco_core.config import ENRICHMENT_TIMEOUT_S
from reco_core.types import RecContext
from reco_ranking.types import Candidate
from reco_user.patterns.schemas import BehavioralProfile

from .types import EnrichedCandidate, Explainer, MediaLookupService

log = logging.getLogger(__name__)


def _fallback(c: Candidate, ctx: RecContext | None) -> Explanation:
    return Explanation(
        text=build_fallback_explanation(
            title=c.item.title,
            creator=c.item.creator,
            category=c.item.category,
            tier=c.tier,
            ctx=ctx,
        ),
        source="fallback",
    )


async def enrich_page(
    candidates: Sequence[Candidate],
    *,
    explainer: Explainer | None = None,
    media: MediaLookupService | None = None,
    ctx: RecContext | None = None,
    profile: BehavioralProfile | None = None,
    timeout_s: float = ENRICHMENT_TIMEOUT_S,
) -> list[EnrichedCandidate]:
    """
    Run explanation and media lookup for every candidate of a page concurrently,
    at most len(page) calls in flight. Each call is time-boxed on its own; a failure
    degrades only that candidate's field (fallback text or None media). A missing
    collaborator leaves its field None.
    """
    out = [EnrichedCandidate(candidate=c) for c in candidates]
    if not out:
        return out
    limiter = anyio.CapacityLimiter(len(out))

    async def _explain(slot: EnrichedCandidate) -> None:
        c = slot.candidate
        async with limiter:
            try:
                with anyio.fail_after(timeout_s):
                    slot.explanation = await explainer.explain(
                        title=c.item.title,
                        creator=c.item.creator,
                        category=c.item.category,
                        score=c.score,
                        tier=c.tier,
                        ctx=ctx,
                        profile=profile,
                    )
            except TimeoutError:
                log.warning("Explanation for %s timed out", c.id)
                slot.explanation = _fallback(c, ctx)
            except Exception:
                log.exception("Explanation for %s failed", c.id)
                slot.explanation = _fallback(c, ctx)

    async def _lookup(slot: EnrichedCandidate) -> None:
        c = slot.candidate
        async with limiter:
            try:
                with anyio.fail_after(timeout_s):
                    slot.media = await media.lookup(c.item.title, c.item.creator)
            except TimeoutError:
                log.warning("Media lookup for %s timed out", c.id)
                slot.media = None
            except Exception:
                log.exception("Media lookup for %s failed", c.id)
                slot.media = None

    async with anyio.create_task_group() as tg:
        for slot in out:
            if explainer is not None:
                tg.start_soon(_explain, slot)
            if media is not None:
                tg.start_soon(_lookup, slot)
    return out
