import numpy as np
import pytest

from reco_core.types import MatchTier, RecContext, ScoringMode, ScoringParams, TimeOfDay
from reco_ranking.boost import BehavioralBoost, ProfileIndex, WeightedFeatureBoost
from reco_ranking.jitter import VarietyJitter, tier_for
from reco_ranking.scorer import Scorer
from reco_ranking.types import CandidateSource
from reco_user.patterns.pattern_extractor import extract_behavioral_profile

from conftest import make_item, make_record


def _afternoon_electronic_profile():
    records = [
        make_record("Midnight City", "M83", "Electronic", hour=14, completion=0.9, liked=True, mood="happy"),
        make_record("Strobe", "deadmau5", "Electronic", hour=15, completion=0.9, liked=True),
        make_record("Windowlicker", "Aphex Twin", "Electronic", hour=16, completion=0.9, liked=True),
    ]
    return extract_behavioral_profile("u1", records)


def test_bucket_category_and_song_reach_point_seven():
    index = ProfileIndex.from_profile(_afternoon_electronic_profile())
    item = make_item("Midnight City", "M83", "electronic", item_id="other-id")
    b = BehavioralBoost().boost(item, index, RecContext(time_of_day=TimeOfDay.AFTERNOON))

    assert b.features["bucket_category"].contribution == pytest.approx(0.3)
    assert b.features["bucket_song"].contribution == pytest.approx(0.4)
    assert b.raw_total >= 0.7
    # affinity, creator and top item push it past the cap
    assert b.raw_total > 1.0
    assert b.total == 1.0


def test_no_context_gives_no_bucket_or_mood_boost():
    index = ProfileIndex.from_profile(_afternoon_electronic_profile())
    item = make_item("Unheard", "Someone", "electronic")
    b = BehavioralBoost().boost(item, index, RecContext())
    assert b.features["bucket_category"].contribution == 0.0
    assert b.features["mood"].contribution == 0.0
    assert b.total == pytest.approx(0.2)  # category affinity only


def test_mood_and_activity_match_on_category():
    index = ProfileIndex.from_profile(_afternoon_electronic_profile())
    item = make_item("Unheard", "Someone", "Electronic")
    b = BehavioralBoost().boost(item, index, RecContext(mood="happy", activity="running"))
    assert b.features["mood"].contribution == pytest.approx(0.25)
    assert b.features["activity"].contribution == 0.0


def test_affinity_is_proportional_to_max_weight():
    records = [
        make_record("A", "X", "rock", completion=1.0, rating=5, liked=True),
        make_record("B", "Y", "pop", completion=0.5),
    ]
    index = ProfileIndex.from_profile(extract_behavioral_profile("u1", records))
    pop = BehavioralBoost().boost(make_item("C", "Z", "pop"), index, RecContext())
    # rock weight 1.0, pop weight 0.2
    assert pop.features["category_affinity"].value == pytest.approx(0.2)
    assert pop.total == pytest.approx(0.2 * 0.2)


def test_same_similarity_electronic_outranks_rock(encoder):
    index = ProfileIndex.from_profile(_afternoon_electronic_profile())
    electronic = make_item("New Electronic", "Fresh", "electronic")
    rock = make_item("New Rock", "Fresh Band", "rock")
    user = np.zeros(encoder.dim, dtype=np.float32)
    user[0] = user[1] = 1.0  # equal electronic and rock membership
    scorer = Scorer.from_params(ScoringParams())
    ctx = RecContext(time_of_day=TimeOfDay.AFTERNOON)

    e = scorer.score(electronic, user_vec=user, item_vec=encoder.encode(electronic), index=index, ctx=ctx)
    r = scorer.score(rock, user_vec=user, item_vec=encoder.encode(rock), index=index, ctx=ctx)

    assert e.similarity == pytest.approx(r.similarity)
    assert e.score > r.score
    assert e.score - r.score == pytest.approx(0.3 * (0.3 + 0.2))
    assert e.breakdown.contributions() == {"bucket_category": 0.3, "category_affinity": 0.2}


def test_embedding_mode_uses_similarity_only(encoder):
    item = make_item("A", "B", "rock")
    vec = encoder.encode(item)
    scorer = Scorer.from_params(ScoringParams(mode=ScoringMode.EMBEDDING))
    c = scorer.score(item, user_vec=vec, item_vec=vec)
    assert c.score == pytest.approx(1.0)
    assert c.boost == 0.0
    assert c.tier is MatchTier.HIGH
    assert c.source is CandidateSource.EMBEDDING


def test_behavioral_mode_without_profile_is_similarity_only(encoder):
    item = make_item("A", "B", "rock")
    vec = encoder.encode(item)
    c = Scorer.from_params(ScoringParams()).score(item, user_vec=vec, item_vec=vec, index=None)
    assert c.score == pytest.approx(c.similarity)


def test_mismatched_dimensions_score_zero_without_error(encoder):
    item = make_item("A", "B", "rock")
    c = Scorer().score(item, user_vec=np.ones(3), item_vec=encoder.encode(item))
    assert c.similarity == 0.0
    assert c.tier is MatchTier.EXPLORATORY


def test_weighted_feature_combination(encoder):
    records = [
        make_record("Blue", "Trio", "jazz", hour=20, completion=0.8, rating=4, mood="calm", activity="reading"),
    ]
    index = ProfileIndex.from_profile(extract_behavioral_profile("u1", records))
    item = make_item("Blue", "Trio", "jazz")
    ctx = RecContext(time_of_day=TimeOfDay.EVENING, mood="calm", activity="reading")

    b = WeightedFeatureBoost().boost(item, index, ctx)
    expected = 0.35 + 0.25 + 0.15 + 0.15 * (4 / 5) + 0.10 * 0.8
    assert b.total == pytest.approx(expected)

    partial = WeightedFeatureBoost().boost(item, index, RecContext(mood="sad"))
    assert partial.features["mood"].contribution == pytest.approx(0.15)

    scorer = Scorer.from_params(ScoringParams(mode=ScoringMode.WEIGHTED))
    vec = encoder.encode(item)
    c = scorer.score(item, user_vec=vec, item_vec=vec, index=index, ctx=ctx)
    assert c.score == pytest.approx(min(1.0, 0.7 * 1.0 + 0.3 * expected))


def test_tiers_and_jitter_stay_in_band():
    params = ScoringParams(jitter_amplitude=0.05)
    assert tier_for(0.80, params) is MatchTier.HIGH
    assert tier_for(0.65, params) is MatchTier.MODERATE
    assert tier_for(0.6499, params) is MatchTier.EXPLORATORY

    jitter = VarietyJitter(params, seed="u1")
    for i, score in enumerate([0.81, 0.799, 0.66, 0.30, 0.97]):
        tier = tier_for(score, params)
        shown = jitter.apply(score, f"item-{i}", tier)
        assert tier_for(shown, params) is tier
        assert abs(shown - score) <= 0.05 + 1e-9
        assert 0.0 <= shown <= 1.0
        assert shown == jitter.apply(score, f"item-{i}", tier)
