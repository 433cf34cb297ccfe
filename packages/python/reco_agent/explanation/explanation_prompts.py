import hashlib

from reco_core.types import MatchTier, RecContext

WHY_SYS_PROMPT = """
You are a friendly music curator. Explain in one or two sentences why the given song fits
the listener right now. Use only the supplied facts about the song, the match strength and
the listening context.

Rules:
- Plain text, single line, no markdown, no lists.
- Do not invent facts about the song, the artist or the listener.
- Under 45 words.
"""

_TIER_PHRASE = {
    MatchTier.HIGH: "a strong match",
    MatchTier.MODERATE: "a good match",
    MatchTier.EXPLORATORY: "an exploratory pick",
}

FALLBACK_TEMPLATES = (
    "{title} by {creator} is {tier_phrase} for your taste in {category}{context_clause}.",
    "Because you keep coming back to {category}, {title} by {creator} looks like {tier_phrase}{context_clause}.",
    "{creator}'s {title} brings the {category} sound you enjoy{context_clause}, making it {tier_phrase}.",
    "Picked from your {category} listening{context_clause}: {title} by {creator} is {tier_phrase}.",
)


def context_clause(ctx: RecContext | None) -> str:
    if ctx is None or ctx.is_empty():
        return ""
    parts: list[str] = []
    if ctx.time_of_day is not None:
        parts.append(f"this {ctx.time_of_day.value}")
    if ctx.mood:
        parts.append(f"when you feel {ctx.mood}")
    if ctx.activity:
        parts.append(f"while {ctx.activity}")
    return " " + " ".join(parts)


def template_index(title: str, creator: str) -> int:
    digest = hashlib.md5(f"{title}{creator}".encode("utf-8")).hexdigest()
    return int(digest, 16) % len(FALLBACK_TEMPLATES)


def build_fallback_explanation(
    *,
    title: str,
    creator: str,
    category: str,
    tier: MatchTier,
    ctx: RecContext | None = None,
) -> str:
    tpl = FALLBACK_TEMPLATES[template_index(title, creator)]
    return tpl.format(
        title=title,
        creator=creator,
        category=(category or "unknown").strip() or "unknown",
        tier_phrase=_TIER_PHRASE[tier],
        context_clause=context_clause(ctx),
    )


def build_why_user_prompt(
    *,
    title: str,
    creator: str,
    category: str,
    tier: MatchTier,
    score: float,
    ctx: RecContext | None = None,
    top_categories: list[str] | None = None,
) -> str:
    parts = [
        "SONG",
        f"title: {title}",
        f"artist: {creator}",
        f"genre: {category}",
        "",
        "MATCH",
        f"tier: {tier.value}",
        f"score: {score:.2f}",
    ]
    if ctx is not None and not ctx.is_empty():
        parts.append("")
        parts.append("CONTEXT")
        if ctx.time_of_day is not None:
            parts.append(f"time_of_day: {ctx.time_of_day.value}")
        if ctx.mood:
            parts.append(f"mood: {ctx.mood}")
        if ctx.activity:
            parts.append(f"activity: {ctx.activity}")
    if top_categories:
        parts.append("")
        parts.append(f"listener_top_genres: {', '.join(top_categories)}")
    return "\n".join(parts)
