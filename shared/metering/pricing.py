"""Token pricing rules shared by every metered operation.

Users are charged in "tokens" estimated from character counts rather than
the provider's tokenizer, scaled by a per-model multiplier. The same rules
must be applied everywhere cost is estimated or quota accounting drifts.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone

from shared.metering.models import PlanType

CHARS_PER_TOKEN = 4
DEFAULT_MULTIPLIER = 1.0

MODEL_TOKEN_MULTIPLIERS: dict[str, float] = {
    # OpenAI
    "gpt-4o-mini": 1.0,
    "gpt-4o": 3.0,
    # Anthropic
    "claude-3.5-sonnet": 2.0,
    "claude-3.7-sonnet": 2.5,
}

_MODEL_INFO: dict[str, tuple[str, str]] = {
    "gpt-4o-mini": ("GPT-4o Mini", "Fast & efficient - Best value"),
    "gpt-4o": ("GPT-4o", "Premium quality - 3x tokens"),
    "claude-3.5-sonnet": ("Claude 3.5 Sonnet", "Balanced - 2x tokens"),
    "claude-3.7-sonnet": ("Claude 3.7 Sonnet", "Latest & best - 2.5x tokens"),
}

AVATAR_GENERATION_COST = 10_000

_PLAN_TOKEN_LIMITS: dict[PlanType, int] = {
    PlanType.FREE: 250_000,
    PlanType.PRO: 10_000_000,
}

_PLAN_AVATAR_LIMITS: dict[PlanType, int] = {
    PlanType.FREE: 5,
    PlanType.PRO: 50,
}


def model_multiplier(model: str | None) -> float:
    if not model:
        return DEFAULT_MULTIPLIER
    return MODEL_TOKEN_MULTIPLIERS.get(model, DEFAULT_MULTIPLIER)


def estimate_tokens(text: str | None, model: str | None) -> int:
    """Approximate billable tokens: ceil(chars / 4) scaled by the model multiplier."""
    if not text or not text.strip():
        return 0
    base_tokens = math.ceil(len(text) / CHARS_PER_TOKEN)
    return math.ceil(base_tokens * model_multiplier(model))


def model_info(model: str) -> dict[str, object]:
    name, description = _MODEL_INFO.get(model, (model, "Unknown model"))
    return {
        "name": name,
        "description": description,
        "cost_multiplier": model_multiplier(model),
    }


def token_limit_for_plan(plan: PlanType | str) -> int:
    return _PLAN_TOKEN_LIMITS.get(_coerce_plan(plan), _PLAN_TOKEN_LIMITS[PlanType.FREE])


def avatar_limit_for_plan(plan: PlanType | str) -> int:
    return _PLAN_AVATAR_LIMITS.get(_coerce_plan(plan), _PLAN_AVATAR_LIMITS[PlanType.FREE])


def remaining_tokens(tokens_used: int, tokens_limit: int) -> int:
    return max(0, tokens_limit - tokens_used)


def usage_percentage(tokens_used: int, tokens_limit: int) -> float:
    if tokens_limit == 0:
        return 0.0
    return min(100.0, tokens_used / tokens_limit * 100)


def has_exceeded(tokens_used: int, tokens_limit: int) -> bool:
    return tokens_used >= tokens_limit


def format_token_count(tokens: int | float | None) -> str:
    """Compact display form, e.g. 1.5M or 2.3K."""
    if not isinstance(tokens, (int, float)) or isinstance(tokens, bool) or math.isnan(tokens):
        return "0"
    if tokens >= 1_000_000:
        return f"{tokens / 1_000_000:.1f}M"
    if tokens >= 1_000:
        return f"{tokens / 1_000:.1f}K"
    return str(int(tokens))


def next_reset_date(now: datetime | None = None) -> datetime:
    """First instant of the next calendar month (UTC)."""
    now = now or datetime.now(timezone.utc)
    if now.month == 12:
        return datetime(now.year + 1, 1, 1, tzinfo=timezone.utc)
    return datetime(now.year, now.month + 1, 1, tzinfo=timezone.utc)


def new_period_bounds(now: datetime | None = None) -> tuple[datetime, datetime]:
    now = now or datetime.now(timezone.utc)
    start = datetime(now.year, now.month, 1, tzinfo=timezone.utc)
    return start, next_reset_date(now)


def _coerce_plan(plan: PlanType | str) -> PlanType:
    try:
        return PlanType(str(plan).lower())
    except ValueError:
        return PlanType.FREE
