"""Tests for token estimation and plan pricing."""

from datetime import datetime, timezone

import pytest

from shared.metering import pricing
from shared.metering.models import PlanType


class TestEstimateTokens:
    def test_hello_costs_two_tokens_on_base_model(self):
        assert pricing.estimate_tokens("Hello", "gpt-4o-mini") == 2

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_blank_text_is_free(self, text):
        assert pricing.estimate_tokens(text, "gpt-4o") == 0

    def test_multiplier_is_applied_consistently(self):
        text = "x" * 400  # 100 base tokens
        base = pricing.estimate_tokens(text, "gpt-4o-mini")

        assert base == 100
        assert pricing.estimate_tokens(text, "gpt-4o") == 3 * base
        assert pricing.estimate_tokens(text, "claude-3.5-sonnet") == 2 * base
        assert pricing.estimate_tokens(text, "claude-3.7-sonnet") == 250

    def test_unknown_model_uses_base_multiplier(self):
        assert pricing.model_multiplier("mystery-model") == 1.0
        assert pricing.estimate_tokens("abcd", "mystery-model") == 1

    def test_rounds_up(self):
        # ceil(5 / 4) = 2, then ceil(2 * 2.5) = 5
        assert pricing.estimate_tokens("Hello", "claude-3.7-sonnet") == 5


class TestPlans:
    def test_plan_limits(self):
        assert pricing.token_limit_for_plan(PlanType.FREE) == 250_000
        assert pricing.token_limit_for_plan("pro") == 10_000_000
        assert pricing.avatar_limit_for_plan(PlanType.FREE) == 5
        assert pricing.avatar_limit_for_plan(PlanType.PRO) == 50

    def test_unknown_plan_falls_back_to_free(self):
        assert pricing.token_limit_for_plan("enterprise") == 250_000


class TestDisplayHelpers:
    @pytest.mark.parametrize(
        "tokens,expected",
        [(0, "0"), (999, "999"), (2_300, "2.3K"), (1_500_000, "1.5M"), (None, "0"), (float("nan"), "0")],
    )
    def test_format_token_count(self, tokens, expected):
        assert pricing.format_token_count(tokens) == expected

    def test_usage_percentage_is_capped(self):
        assert pricing.usage_percentage(125_000, 250_000) == 50.0
        assert pricing.usage_percentage(300_000, 250_000) == 100.0
        assert pricing.usage_percentage(10, 0) == 0.0

    def test_exceeded_at_limit(self):
        assert pricing.has_exceeded(250_000, 250_000)
        assert not pricing.has_exceeded(249_999, 250_000)


class TestPeriodBounds:
    def test_month_window(self):
        start, end = pricing.new_period_bounds(datetime(2026, 3, 15, 12, tzinfo=timezone.utc))
        assert start == datetime(2026, 3, 1, tzinfo=timezone.utc)
        assert end == datetime(2026, 4, 1, tzinfo=timezone.utc)

    def test_december_rolls_over_year(self):
        assert pricing.next_reset_date(datetime(2026, 12, 31, tzinfo=timezone.utc)) == datetime(
            2027, 1, 1, tzinfo=timezone.utc
        )
