"""
Static model pricing and context window lookup.

Prices are USD per million tokens (approximate, late 2024). Models are matched
by case-insensitive substring, most specific name first, so ``gpt-4o-mini``
never falls through to the ``gpt-4o`` row.
"""

from typing import NamedTuple, Tuple

MILLION = 1_000_000


class TokenCost(NamedTuple):
    input: float
    output: float


# (name fragment, cost, context window)
_MODEL_TABLE: Tuple[Tuple[str, TokenCost, int], ...] = (
    ("gpt-4o-mini", TokenCost(0.15, 0.6), 128_000),
    ("gpt-4o", TokenCost(2.5, 10.0), 128_000),
    ("gpt-4-turbo", TokenCost(10.0, 30.0), 128_000),
    ("gpt-4", TokenCost(30.0, 60.0), 8_192),
    ("gpt-3.5-turbo", TokenCost(0.5, 1.5), 16_385),
)

DEFAULT_COST = TokenCost(2.5, 10.0)
DEFAULT_CONTEXT_WINDOW = 128_000


def _lookup(model: str):
    model_lower = (model or "").lower()
    for fragment, cost, window in _MODEL_TABLE:
        if fragment in model_lower:
            return cost, window
    return DEFAULT_COST, DEFAULT_CONTEXT_WINDOW


def get_cost_per_1m_tokens(model: str) -> TokenCost:
    return _lookup(model)[0]


def get_context_window_size(model: str) -> int:
    return _lookup(model)[1]


def calculate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    """Approximate USD cost of one request."""
    costs = get_cost_per_1m_tokens(model)
    input_cost = (prompt_tokens / MILLION) * costs.input
    output_cost = (completion_tokens / MILLION) * costs.output
    return input_cost + output_cost
