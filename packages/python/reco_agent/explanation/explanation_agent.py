from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

import anyio

from reco_core.config import ENRICHMENT_TIMEOUT_S
from reco_core.llm_client import LlmClient
from reco_core.types import MatchTier, RecContext
from reco_user.patterns.schemas import BehavioralProfile

from .explanation_prompts import (
    WHY_SYS_PROMPT,
    build_fallback_explanation,
    build_why_user_prompt,
)

log = logging.getLogger(__name__)


@dataclass
class Explanation:
    text: str
    source: Literal["llm", "fallback"]


class ExplanationComposer:
    """
    Per-item "why you might like it" text. The LLM call is time-boxed; any failure,
    timeout or empty answer yields the deterministic template sentence instead.
    """

    def __init__(
        self,
        llm: LlmClient | None = None,
        *,
        timeout_s: float = ENRICHMENT_TIMEOUT_S,
        model: str | None = None,
        temperature: float = 0.6,
        max_tokens: int = 120,
    ):
        self.llm = llm
        self.timeout_s = timeout_s
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def enabled(self) -> bool:
        return self.llm is not None

    async def explain(
        self,
        *,
        title: str,
        creator: str,
        category: str,
        score: float,
        tier: MatchTier,
        ctx: RecContext | None = None,
        profile: BehavioralProfile | None = None,
    ) -> Explanation:
        if self.llm is not None:
            messages = [
                {"role": "system", "content": WHY_SYS_PROMPT},
                {
                    "role": "user",
                    "content": build_why_user_prompt(
                        title=title,
                        creator=creator,
                        category=category,
                        tier=tier,
                        score=score,
                        ctx=ctx,
                        top_categories=profile.top_categories(5) if profile else None,
                    ),
                },
            ]
            try:
                with anyio.fail_after(self.timeout_s):
                    text = await self.llm.complete_text(
                        messages=messages,
                        model=self.model,
                        temperature=self.temperature,
                        max_tokens=self.max_tokens,
                    )
                if text:
                    return Explanation(text=" ".join(text.split()), source="llm")
            except TimeoutError:
                log.warning("Explanation timed out after %.1fs for %r", self.timeout_s, title)
            except Exception:
                log.exception("Explanation LLM call failed for %r", title)

        return Explanation(
            text=build_fallback_explanation(
                title=title, creator=creator, category=category, tier=tier, ctx=ctx
            ),
            source="fallback",
        )
