"""Token usage accounting with a deterministic estimate fallback."""

from __future__ import annotations

import math

from datachat.models.domain import TokenUsage

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN) if text else 0


def account_tokens(prompt: str, completion: str, usage: TokenUsage | None = None) -> TokenUsage:
    """Prefer provider-reported usage; otherwise estimate from text length."""
    if usage is not None and usage.total_tokens > 0:
        return usage
    prompt_tokens = estimate_tokens(prompt)
    completion_tokens = estimate_tokens(completion)
    return TokenUsage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=prompt_tokens + completion_tokens,
        is_estimated=True,
    )
