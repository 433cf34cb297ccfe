from __future__ import annotations

from typing import Iterable, Mapping

import numpy as np

from reco_core.types import Item, ItemId, RecContext, ScoringMode, ScoringParams

from .boost import BehavioralBoost, BoostStrategy, ProfileIndex, WeightedFeatureBoost
from .jitter import tier_for
from .similarity import cosine_similarity
from .types import Candidate, CandidateSource


def _clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


class Scorer:
    """
    One parameterized scorer for every mode.

    With a boost strategy and a profile: final = sim * w_sim + boost * w_boost.
    Without either: final = similarity alone.
    Similarity and boost are clamped to [0, 1] before combining; final is clamped too.
    """

    def __init__(self, params: ScoringParams | None = None, strategy: BoostStrategy | None = None):
        self.params = params or ScoringParams()
        self.strategy = strategy

    @classmethod
    def from_params(cls, params: ScoringParams) -> "Scorer":
        if params.mode is ScoringMode.BEHAVIORAL:
            return cls(params, BehavioralBoost(params))
        if params.mode is ScoringMode.WEIGHTED:
            return cls(params, WeightedFeatureBoost(params))
        return cls(params, None)

    def score(
        self,
        item: Item,
        *,
        user_vec: np.ndarray,
        item_vec: np.ndarray,
        index: ProfileIndex | None = None,
        ctx: RecContext | None = None,
    ) -> Candidate:
        ctx = ctx or RecContext()
        sim = _clamp01(cosine_similarity(user_vec, item_vec))
        if self.strategy is None or index is None:
            return self._candidate(item, sim, 0.0, sim, CandidateSource.EMBEDDING, None)

        breakdown = self.strategy.boost(item, index, ctx)
        boost = _clamp01(breakdown.total)
        final = _clamp01(sim * self.strategy.similarity_weight + boost * self.strategy.boost_weight)
        return self._candidate(item, sim, boost, final, CandidateSource.EMBEDDING, breakdown)

    def score_all(
        self,
        items: Iterable[Item],
        *,
        user_vec: np.ndarray,
        item_vecs: Mapping[ItemId, np.ndarray],
        index: ProfileIndex | None = None,
        ctx: RecContext | None = None,
    ) -> list[Candidate]:
        """Score items that have an embedding; sorted by score desc, stable on input order."""
        out = [
            self.score(it, user_vec=user_vec, item_vec=item_vecs[it.item_id], index=index, ctx=ctx)
            for it in items
            if it.item_id in item_vecs
        ]
        out.sort(key=lambda c: c.score, reverse=True)
        return out

    def boost_only(
        self, item: Item, index: ProfileIndex, ctx: RecContext | None = None
    ) -> Candidate:
        """Behavioral-fallback score: no similarity term, boost weighted as usual."""
        strategy = self.strategy or BehavioralBoost(self.params)
        breakdown = strategy.boost(item, index, ctx or RecContext())
        boost = _clamp01(breakdown.total)
        final = _clamp01(boost * strategy.boost_weight)
        return self._candidate(item, 0.0, boost, final, CandidateSource.BEHAVIORAL, breakdown)

    def _candidate(self, item, sim, boost, final, source, breakdown) -> Candidate:
        return Candidate(
            item=item,
            similarity=sim,
            boost=boost,
            score=final,
            tier=tier_for(final, self.params),
            source=source,
            breakdown=breakdown,
        )
