"""Tests for the pattern-based query classifier."""

import pytest

from estate_bot.ai.classifier import classify
from estate_bot.core.types import QueryType


@pytest.mark.parametrize(
    "text, expected",
    [
        ("hi", QueryType.SIMPLE),
        ("Hello!", QueryType.SIMPLE),
        ("thanks", QueryType.SIMPLE),
        ("What can you do?", QueryType.SIMPLE),
        ("Show me 3 bedroom homes in Reading", QueryType.PROPERTY_SEARCH),
        ("Do you have any condos?", QueryType.PROPERTY_SEARCH),
        ("What's the market trend in Salem?", QueryType.MARKET_ANALYSIS),
        ("Tell me more about it", QueryType.PROPERTY_SEARCH),
        ("number 3", QueryType.PROPERTY_SEARCH),
        ("Is 220 Essex Street quiet?", QueryType.PROPERTY_SEARCH),
        ("What are your office hours?", QueryType.GENERAL),
    ],
)
def test_classify(text, expected):
    assert classify(text) == expected


def test_search_terms_win_over_analysis_terms():
    # "homes in" is checked before "compare"
    assert classify("compare homes in Reading") == QueryType.PROPERTY_SEARCH


def test_greeting_followed_by_request_is_not_simple():
    assert classify("hi, find me a condo") == QueryType.PROPERTY_SEARCH
