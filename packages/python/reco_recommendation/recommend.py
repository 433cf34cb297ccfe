from __future__ import annotations

import logging
import random
from typing import List

import numpy as np

from reco_core.config import BEHAVIORAL_FALLBACK_CATEGORIES
from reco_core.types import Item, RecContext, ScoringParams, normalize_category
from reco_embeddings.item_encoder import FeatureEncoder
from reco_embeddings.profile_aggregator import build_user_embedding, rated_items
from reco_ranking.boost import ProfileIndex
from reco_ranking.dedup import dedupe_by_title_creator
from reco_ranking.jitter import VarietyJitter, tier_for
from reco_ranking.pagination import paginate
from reco_ranking.scorer import Scorer
from reco_ranking.types import Candidate, CandidateSource
from reco_store.base import RecoStore

from .types import PipelineState, RecommendationPage, RecommendationRequest

log = logging.getLogger(__name__)


class RecommendPipeline:
    """
    Single recommendation pipeline for every scoring mode.

      1) Primary: cosine similarity of user vs item embeddings, plus the configured boost
      2) NoEmbedding -> BehavioralFallback: items in the profile's top-5 categories
      3) PopularityFallback: global popularity, seeded shuffle among ties
      4) Done: dedup by (title, creator), slice [offset, offset+limit)

    Each fallback only appends to what earlier stages selected, and stops as soon as
    one item past the requested page is known (that item drives has_more).
    """

    def __init__(
        self,
        store: RecoStore,
        *,
        scorer: Scorer | None = None,
        encoder: FeatureEncoder | None = None,
        params: ScoringParams | None = None,
    ):
        self.store = store
        self.params = params or (scorer.params if scorer else ScoringParams())
        self.scorer = scorer or Scorer.from_params(self.params)
        self.encoder = encoder or FeatureEncoder()

    async def run(self, req: RecommendationRequest) -> RecommendationPage:
        ctx = req.ctx or RecContext()
        target = req.offset + req.limit + 1

        items = await self.store.list_items()
        profile = await self.store.get_behavioral_profile(req.user_id)
        index = ProfileIndex.from_profile(profile) if profile is not None else None

        seen: set = set()
        pruned: list[dict] = []
        collected: list[Candidate] = []
        states: list[PipelineState] = []

        # 1) primary
        user_vec = await self._user_vector(req.user_id, items)
        if user_vec is not None:
            item_vecs = await self.store.get_item_embeddings()
            scored = self.scorer.score_all(
                items, user_vec=user_vec, item_vecs=item_vecs, index=index, ctx=ctx
            )
            kept, dropped = dedupe_by_title_creator(scored, seen=seen)
            collected.extend(kept)
            pruned.extend(dropped)

        state = PipelineState.NO_EMBEDDING if user_vec is None else PipelineState.BEHAVIORAL_FALLBACK
        while state is not PipelineState.DONE:
            if len(collected) >= target:
                break
            states.append(state)
            if state is PipelineState.NO_EMBEDDING:
                state = PipelineState.BEHAVIORAL_FALLBACK
            elif state is PipelineState.BEHAVIORAL_FALLBACK:
                if index is not None:
                    self._fill(collected, self._behavioral(items, index, ctx), seen, pruned, target)
                state = PipelineState.POPULARITY_FALLBACK
            elif state is PipelineState.POPULARITY_FALLBACK:
                self._fill(collected, self._popularity(items, req.user_id), seen, pruned, target)
                state = PipelineState.DONE
        states.append(PipelineState.DONE)

        page = paginate(collected, req.offset, req.limit)
        jitter = VarietyJitter(self.params, seed=req.user_id)
        for c in page.items:
            c.display_score = jitter.apply(c.score, c.id, c.tier)

        log.debug(
            "recommend user=%s collected=%d states=%s",
            req.user_id,
            len(collected),
            [s.value for s in states],
        )
        return RecommendationPage(
            candidates=page.items,
            offset=page.offset,
            limit=page.limit,
            has_more=page.has_more,
            total_collected=len(collected),
            states=states,
            profile=profile,
            pruned=pruned,
        )

    async def _user_vector(self, user_id: str, items: List[Item]) -> np.ndarray | None:
        vec = await self.store.get_user_embedding(user_id)
        if vec is not None:
            return vec
        # no stored vector: derive one from history if there is any
        records = await self.store.list_interactions(user_id)
        if not records:
            return None
        pairs = rated_items(records, {it.item_id: it for it in items})
        if not pairs:
            return None
        vec, _ = build_user_embedding(pairs, encoder=self.encoder)
        return vec

    def _behavioral(
        self, items: List[Item], index: ProfileIndex, ctx: RecContext
    ) -> List[Candidate]:
        top = set(index.top_categories[:BEHAVIORAL_FALLBACK_CATEGORIES])
        if not top:
            return []
        out = [
            self.scorer.boost_only(it, index, ctx)
            for it in items
            if normalize_category(it.category) in top
        ]
        out.sort(key=lambda c: c.score, reverse=True)
        return out

    def _popularity(self, items: List[Item], seed: str) -> List[Candidate]:
        rng = random.Random(seed)
        keyed = [(float(it.popularity or 0.0), rng.random(), it) for it in items]
        keyed.sort(key=lambda t: (-t[0], t[1]))
        return [
            Candidate(
                item=it,
                score=pop,
                tier=tier_for(pop, self.params),
                source=CandidateSource.POPULARITY,
            )
            for pop, _, it in keyed
        ]

    @staticmethod
    def _fill(
        collected: List[Candidate],
        candidates: List[Candidate],
        seen: set,
        pruned: list[dict],
        target: int,
    ) -> None:
        for c in candidates:
            if len(collected) >= target:
                return
            kept, dropped = dedupe_by_title_creator([c], seen=seen)
            collected.extend(kept)
            pruned.extend(dropped)

