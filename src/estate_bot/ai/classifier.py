"""Pattern-based query classifier used to pick a provider chain and tool usage."""

from __future__ import annotations

import re

from estate_bot.core.types import QueryType

SIMPLE_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^(hi|hello|hey|good morning|good afternoon|good evening)[\s!.,]*$",
        r"^(thanks|thank you|thx|bye|goodbye|see you)[\s!.,]*$",
        r"how are you|what's up|what can you do",
    )
)

SEARCH_TERMS = (
    "show me", "find", "search for", "looking for", "homes in", "houses in",
    "properties in", "bedroom", "bath", "under $", "less than $", "between $",
    "price range", "for sale", "for rent", "listing", "mls",
    # property types
    "condo", "apartment", "townhouse", "townhome", "single family", "duplex", "multi-family",
    # availability phrasing
    "do you have", "if you have", "have any", "are there", "any available", "what's available",
    # street phrasing
    "properties on", "homes on", "houses on", "on main street", "on grove street", "on the street",
)

ANALYSIS_TERMS = (
    "market trend", "price trend", "market analysis", "compare", "cma", "investment",
    "appreciation", "forecast", "market conditions", "average price", "median price", "inventory",
)

DETAIL_TERMS = (
    "tell me more", "tell me about", "more details", "details on", "details about",
    "more info", "more information", "what about", "can you tell me", "describe", "description",
)

REFERENCE_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\b(number|option|#)\s*\d+",
        r"#\d+",
        r"\b(first|second|third|fourth|fifth)\s*(one|property|listing)?\b",
        r"\bthe\s+\d+(st|nd|rd|th)\s*(one|property|listing)?",
    )
)

STREET_ADDRESS = re.compile(
    r"\d+\s+\w+\s+(st|street|ave|avenue|rd|road|dr|drive|ln|lane|blvd|way|pl|place|ct|court)\b",
    re.IGNORECASE,
)


def _contains_any(text: str, terms: tuple[str, ...]) -> bool:
    return any(term in text for term in terms)


def classify(text: str) -> QueryType:
    """First match wins: simple, search, analysis, detail, reference, street, general."""
    message = text.strip()
    lowered = message.lower()

    if any(p.search(message) for p in SIMPLE_PATTERNS):
        return QueryType.SIMPLE
    if _contains_any(lowered, SEARCH_TERMS):
        return QueryType.PROPERTY_SEARCH
    if _contains_any(lowered, ANALYSIS_TERMS):
        return QueryType.MARKET_ANALYSIS
    if _contains_any(lowered, DETAIL_TERMS):
        return QueryType.PROPERTY_SEARCH
    if any(p.search(message) for p in REFERENCE_PATTERNS):
        return QueryType.PROPERTY_SEARCH
    if STREET_ADDRESS.search(message):
        return QueryType.PROPERTY_SEARCH
    return QueryType.GENERAL
