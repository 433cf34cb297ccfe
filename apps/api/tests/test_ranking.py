import numpy as np
import pytest

from reco_core.types import RecContext, ScoringParams, TimeOfDay
from reco_ranking.dedup import dedupe_by_title_creator
from reco_ranking.pagination import paginate
from reco_ranking.types import Candidate, CandidateSource
from reco_recommendation.recommend import RecommendPipeline
from reco_recommendation.types import PipelineState, RecommendationRequest
from reco_user.patterns.pattern_extractor import extract_behavioral_profile

from conftest import make_item, make_record, seed_catalog

pytestmark = pytest.mark.anyio


def _catalog():
    # varied categories and energy so scores differ
    cats = ["electronic", "rock", "pop", "jazz", "house", "indie", "soul", "metal", "folk", "edm"]
    items = [
        make_item(f"Song {i}", f"Artist {i}", cat, energy=0.1 * i, popularity=0.05 * i)
        for i, cat in enumerate(cats)
    ]
    # same (title, creator) as Song 0 under another id and casing
    items.append(make_item("SONG 0", "artist 0", "electronic", item_id="dup-0", energy=0.0))
    return items


def test_dedup_keeps_first_and_is_idempotent():
    a = Candidate(item=make_item("Same", "Artist", "pop", item_id="a"), score=0.9)
    b = Candidate(item=make_item(" same ", "ARTIST", "pop", item_id="b"), score=0.8)
    c = Candidate(item=make_item("Other", "Artist", "pop", item_id="c"), score=0.7)

    kept, pruned = dedupe_by_title_creator([a, b, c])
    assert [x.id for x in kept] == ["a", "c"]
    assert [p["item_id"] for p in pruned] == ["b"]

    again, pruned_again = dedupe_by_title_creator(kept)
    assert [x.id for x in again] == ["a", "c"]
    assert pruned_again == []


def test_paginate_has_more():
    seq = list(range(9))
    assert paginate(seq, 0, 4).has_more is True
    assert paginate(seq, 4, 4).items == [4, 5, 6, 7]
    last = paginate(seq, 8, 4)
    assert last.items == [8]
    assert last.has_more is False
    assert paginate(seq, 20, 4).items == []


async def test_pagination_is_stable_and_exhaustive(store, encoder):
    items = _catalog()
    await seed_catalog(store, items, encoder)
    await store.put_user_embedding("u1", encoder.encode(items[3]))
    pipeline = RecommendPipeline(store, encoder=encoder, params=ScoringParams(jitter_amplitude=0.0))

    seen_ids, scores, offset = [], [], 0
    while True:
        page = await pipeline.run(RecommendationRequest(user_id="u1", offset=offset, limit=4))
        assert len(page.candidates) <= 4
        seen_ids += [c.id for c in page.candidates]
        scores += [c.score for c in page.candidates]
        if not page.has_more:
            break
        offset += 4

    assert len(seen_ids) == 10  # 11 items, one duplicate identity
    assert len(set(seen_ids)) == 10
    assert scores == sorted(scores, reverse=True)
    keys = {(store._items[i].title.casefold(), store._items[i].creator.casefold()) for i in seen_ids}
    assert len(keys) == 10


async def test_repeated_runs_return_the_same_list(store, encoder):
    items = _catalog()
    await seed_catalog(store, items, encoder)
    await store.put_user_embedding("u1", encoder.encode(items[5]))
    pipeline = RecommendPipeline(store, encoder=encoder)

    req = RecommendationRequest(user_id="u1", offset=0, limit=10, ctx=RecContext(time_of_day=TimeOfDay.EVENING))
    first = await pipeline.run(req)
    second = await pipeline.run(req)
    assert [c.id for c in first.candidates] == [c.id for c in second.candidates]
    assert [c.display_score for c in first.candidates] == [c.display_score for c in second.candidates]
    for c in first.candidates:
        assert abs(c.display_score - c.score) <= pipeline.params.jitter_amplitude + 1e-9


async def test_equal_scores_keep_insertion_order(store, encoder):
    items = [make_item(f"Twin {i}", f"Artist {i}", "rock") for i in range(5)]
    await seed_catalog(store, items, encoder)
    await store.put_user_embedding("u1", encoder.encode(items[0]))
    page = await RecommendPipeline(store, encoder=encoder).run(RecommendationRequest(user_id="u1", limit=5))
    assert [c.id for c in page.candidates] == [it.item_id for it in items]


async def test_empty_catalog_returns_empty_page(store, encoder):
    page = await RecommendPipeline(store, encoder=encoder).run(RecommendationRequest(user_id="nobody", limit=4))
    assert page.candidates == []
    assert page.has_more is False
    assert page.states == [
        PipelineState.NO_EMBEDDING,
        PipelineState.BEHAVIORAL_FALLBACK,
        PipelineState.POPULARITY_FALLBACK,
        PipelineState.DONE,
    ]


async def test_behavioral_then_popularity_fallback(store, encoder):
    items = [
        make_item("Rock A", "Band", "rock", popularity=0.2),
        make_item("Pop Hit", "Star", "pop", popularity=0.9),
        make_item("Rock B", "Band", "rock", popularity=0.1),
        make_item("Jazz Tune", "Trio", "jazz", popularity=0.5),
    ]
    # items exist but there is no user embedding and no stored history
    await store.put_items(items)
    profile = extract_behavioral_profile(
        "u1", [make_record("Old Rock", "Legends", "rock", completion=1.0, rating=5)]
    )
    await store.replace_behavioral_profile("u1", profile)

    page = await RecommendPipeline(store, encoder=encoder).run(RecommendationRequest(user_id="u1", limit=10))
    assert [c.item.title for c in page.candidates] == ["Rock A", "Rock B", "Pop Hit", "Jazz Tune"]
    assert [c.source for c in page.candidates] == [
        CandidateSource.BEHAVIORAL,
        CandidateSource.BEHAVIORAL,
        CandidateSource.POPULARITY,
        CandidateSource.POPULARITY,
    ]
    assert page.states == [
        PipelineState.NO_EMBEDDING,
        PipelineState.BEHAVIORAL_FALLBACK,
        PipelineState.POPULARITY_FALLBACK,
        PipelineState.DONE,
    ]
    assert page.has_more is False


async def test_popularity_only_without_profile(store, encoder):
    items = [
        make_item("Low", "A", "pop", popularity=0.1),
        make_item("High", "B", "pop", popularity=0.95),
        make_item("Mid", "C", "pop", popularity=0.5),
    ]
    await store.put_items(items)
    page = await RecommendPipeline(store, encoder=encoder).run(RecommendationRequest(user_id="u1", limit=2))
    assert [c.item.title for c in page.candidates] == ["High", "Mid"]
    assert page.has_more is True


async def test_popularity_ties_are_seeded_per_user(store, encoder):
    items = [make_item(f"Tie {i}", "Same", "pop", popularity=0.5) for i in range(8)]
    await store.put_items(items)
    pipeline = RecommendPipeline(store, encoder=encoder)
    a1 = await pipeline.run(RecommendationRequest(user_id="alice", limit=8))
    a2 = await pipeline.run(RecommendationRequest(user_id="alice", limit=8))
    assert [c.id for c in a1.candidates] == [c.id for c in a2.candidates]
    assert sorted(c.id for c in a1.candidates) == sorted(it.item_id for it in items)


async def test_fallback_only_fills_remaining_slots(store, encoder):
    embedded = [make_item("Emb 1", "A", "rock"), make_item("Emb 2", "B", "pop")]
    plain = [make_item("Plain 1", "C", "jazz", popularity=0.9), make_item("Plain 2", "D", "folk", popularity=0.8)]
    await seed_catalog(store, embedded, encoder)
    await store.put_items(plain)
    # the popularity stage also sees the embedded items; they must not repeat
    await store.put_user_embedding("u1", encoder.encode(embedded[0]))

    page = await RecommendPipeline(store, encoder=encoder).run(RecommendationRequest(user_id="u1", limit=4))
    assert [c.item.title for c in page.candidates[:2]] == ["Emb 1", "Emb 2"]
    assert {c.source for c in page.candidates[:2]} == {CandidateSource.EMBEDDING}
    assert [c.item.title for c in page.candidates[2:]] == ["Plain 1", "Plain 2"]
    assert page.has_more is False


async def test_user_vector_derived_from_history_when_not_stored(store, encoder):
    items = [make_item("Jazz 1", "Trio", "jazz"), make_item("Metal 1", "Loud", "metal")]
    await seed_catalog(store, items, encoder)
    await store.append_interactions("u1", [make_record("Jazz 1", "Trio", "jazz", rating=5, completion=1.0)])

    page = await RecommendPipeline(store, encoder=encoder).run(RecommendationRequest(user_id="u1", limit=2))
    assert page.candidates[0].item.title == "Jazz 1"
    assert page.candidates[0].source is CandidateSource.EMBEDDING
    assert np.isclose(page.candidates[0].similarity, 1.0)
