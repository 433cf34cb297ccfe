import pytest

from reco_agent.explanation.explanation_agent import ExplanationComposer
from reco_agent.explanation.explanation_prompts import (
    FALLBACK_TEMPLATES,
    build_fallback_explanation,
    template_index,
)
from reco_core.types import MatchTier, RecContext, TimeOfDay
from reco_ranking.types import Candidate
from reco_recommendation.enrichment import enrich_page

from conftest import FakeLLM, FakeMediaLookup, make_item

pytestmark = pytest.mark.anyio

ARGS = dict(
    title="Midnight City",
    creator="M83",
    category="electronic",
    score=0.83,
    tier=MatchTier.HIGH,
    ctx=RecContext(time_of_day=TimeOfDay.AFTERNOON, mood="happy"),
)


async def test_fallback_is_deterministic_without_llm():
    composer = ExplanationComposer(None)
    a = await composer.explain(**ARGS)
    b = await composer.explain(**ARGS)
    assert a.source == "fallback"
    assert a.text == b.text
    assert "Midnight City" in a.text and "M83" in a.text
    assert "electronic" in a.text
    assert "this afternoon" in a.text


def test_templates_vary_across_items():
    indices = {template_index(f"Song {i}", f"Artist {i}") for i in range(40)}
    assert len(indices) > 1
    assert indices <= set(range(len(FALLBACK_TEMPLATES)))


def test_fallback_mentions_tier():
    text = build_fallback_explanation(
        title="Song", creator="Artist", category="jazz", tier=MatchTier.EXPLORATORY
    )
    assert "exploratory" in text


async def test_llm_text_is_used_when_available():
    llm = FakeLLM(text="  A shimmering\nsynth anthem for a bright afternoon.  ")
    composer = ExplanationComposer(llm)
    out = await composer.explain(**ARGS)
    assert out.source == "llm"
    assert out.text == "A shimmering synth anthem for a bright afternoon."
    assert llm.calls and llm.calls[0]["messages"][0]["role"] == "system"


async def test_llm_timeout_falls_back_to_template():
    composer = ExplanationComposer(FakeLLM(delay=1.0), timeout_s=0.05)
    out = await composer.explain(**ARGS)
    expected = await ExplanationComposer(None).explain(**ARGS)
    assert out.source == "fallback"
    assert out.text == expected.text


async def test_llm_error_or_empty_answer_falls_back():
    failing = await ExplanationComposer(FakeLLM(exc=RuntimeError("boom"))).explain(**ARGS)
    empty = await ExplanationComposer(FakeLLM(text=None)).explain(**ARGS)
    assert failing.source == "fallback"
    assert empty.source == "fallback"
    assert failing.text == empty.text


async def test_enrichment_degrades_per_candidate():
    cands = [
        Candidate(item=make_item(t, "Artist", "pop"), score=0.7)
        for t in ("Good", "Broken", "Slow", "Fine")
    ]
    media = FakeMediaLookup(fail_titles={"Broken"}, delay_titles={"Slow"})
    out = await enrich_page(
        cands,
        explainer=ExplanationComposer(None),
        media=media,
        timeout_s=0.2,
    )

    assert [e.candidate.item.title for e in out] == ["Good", "Broken", "Slow", "Fine"]
    by_title = {e.candidate.item.title: e for e in out}
    assert by_title["Good"].media.id == "vid-Good"
    assert by_title["Fine"].media.url.endswith("vid-Fine")
    assert by_title["Broken"].media is None
    assert by_title["Slow"].media is None
    assert all(e.explanation is not None for e in out)
    assert len(media.calls) == 4


async def test_enrichment_of_empty_page():
    assert await enrich_page([], explainer=ExplanationComposer(None)) == []
