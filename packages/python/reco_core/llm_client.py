"""
Async LLM client used for recommendation explanations, a thin wrapper around the
OpenAI Chat Completions API.
"""

from __future__ import annotations

from typing import Any, Optional

from openai import AsyncOpenAI

from reco_core.config import EXPLANATION_MODEL


class LlmClient:
    """
    Thin async wrapper around OpenAI's chat completion API.

    Timeouts and retries are delegated to the OpenAI client; callers that need a hard
    deadline (the explanation composer) wrap calls in their own time box.
    """

    def __init__(
        self,
        model: str = EXPLANATION_MODEL,
        timeout: float | None = 20.0,
        api_key: str | None = None,
        max_retries: int = 1,
    ) -> None:
        client_kwargs: dict = {"timeout": timeout, "max_retries": max_retries}
        if api_key is not None:
            client_kwargs["api_key"] = api_key

        self._client = AsyncOpenAI(**client_kwargs)
        self._default_model = model

    async def chat(
        self,
        *,
        messages: list[dict[str, Any]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ):
        """
        Call the OpenAI chat completion endpoint.

        Returns the raw OpenAI response object (resp.choices[0].message, resp.usage, ...).
        """
        kwargs: dict[str, Any] = dict(
            model=model or self._default_model,
            messages=messages,
            temperature=temperature,
        )

        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        return await self._client.chat.completions.create(**kwargs)

    async def complete_text(
        self,
        *,
        messages: list[dict[str, Any]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> str | None:
        """Return the first choice's content, or None when the model returned nothing."""
        resp = await self.chat(
            messages=messages,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        choices = getattr(resp, "choices", None)
        if not choices:
            return None
        content = getattr(choices[0].message, "content", None)
        if not content or not content.strip():
            return None
        return content.strip()
