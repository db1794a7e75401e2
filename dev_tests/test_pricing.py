"""
Tests for pricing.py - model cost and context window lookup.
"""

import pytest

from pricing import (
    DEFAULT_CONTEXT_WINDOW,
    DEFAULT_COST,
    calculate_cost,
    get_context_window_size,
    get_cost_per_1m_tokens,
)


class TestLookup:

    def test_mini_is_not_priced_as_full_model(self):
        """
        Given: gpt-4o-mini, whose name contains gpt-4o
        When: Its cost is looked up
        Then: The mini row wins
        """
        assert get_cost_per_1m_tokens("gpt-4o-mini") == (0.15, 0.6)
        assert get_cost_per_1m_tokens("gpt-4o") == (2.5, 10.0)

    def test_case_insensitive_and_dated_names(self):
        assert get_cost_per_1m_tokens("GPT-4o-2024-08-06") == (2.5, 10.0)
        assert get_context_window_size("gpt-4-0613") == 8_192

    def test_unknown_model_uses_defaults(self):
        assert get_cost_per_1m_tokens("my-local-llama") == DEFAULT_COST
        assert get_context_window_size("my-local-llama") == DEFAULT_CONTEXT_WINDOW

    def test_empty_model_name(self):
        assert get_cost_per_1m_tokens("") == DEFAULT_COST


class TestCalculateCost:

    def test_one_million_tokens_each_way(self):
        assert calculate_cost("gpt-4o-mini", 1_000_000, 1_000_000) == pytest.approx(0.75)

    def test_small_request(self):
        """
        Given: 1,000 prompt tokens and 500 completion tokens on gpt-4o
        When: calculate_cost() is called
        Then: Input and output are priced separately
        """
        expected = 1_000 / 1_000_000 * 2.5 + 500 / 1_000_000 * 10.0
        assert calculate_cost("gpt-4o", 1_000, 500) == pytest.approx(expected)

    def test_zero_tokens(self):
        assert calculate_cost("gpt-4o", 0, 0) == 0.0
