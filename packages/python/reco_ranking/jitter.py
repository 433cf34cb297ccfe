from __future__ import annotations

import hashlib

from reco_core.types import MatchTier, ScoringParams


def tier_for(score: float, params: ScoringParams) -> MatchTier:
    if score >= params.high_tier:
        return MatchTier.HIGH
    if score >= params.moderate_tier:
        return MatchTier.MODERATE
    return MatchTier.EXPLORATORY


def _tier_band(tier: MatchTier, params: ScoringParams) -> tuple[float, float]:
    if tier is MatchTier.HIGH:
        return params.high_tier, float("inf")
    if tier is MatchTier.MODERATE:
        return params.moderate_tier, params.high_tier
    return float("-inf"), params.moderate_tier


class VarietyJitter:
    """
    Small display-only perturbation of a candidate's score.

    Deterministic per (seed, item_id) so repeated requests show the same value, and
    clamped so the displayed score never leaves its tier band (widened by tolerance).
    Ranking always uses the unperturbed score.
    """

    def __init__(self, params: ScoringParams, seed: str = ""):
        self.params = params
        self.amplitude = max(0.0, params.jitter_amplitude)
        self.seed = seed

    def offset(self, item_id: str) -> float:
        if self.amplitude == 0.0:
            return 0.0
        h = hashlib.sha256(f"{self.seed}:{item_id}".encode("utf-8")).digest()
        u = int.from_bytes(h[:8], "big") / float(1 << 64)  # [0, 1)
        return (2.0 * u - 1.0) * self.amplitude

    def apply(self, score: float, item_id: str, tier: MatchTier) -> float:
        lo, hi = _tier_band(tier, self.params)
        tol = self.params.tier_tolerance
        jittered = score + self.offset(item_id)
        # upper bound of a band is exclusive
        upper = hi + tol - 1e-9 if hi != float("inf") else hi
        shown = max(lo - tol, min(upper, jittered))
        return max(0.0, min(1.0, shown))
