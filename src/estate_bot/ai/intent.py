"""Intent analysis and entity extraction for the structured-data answer stage."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from estate_bot.core.types import IntentType

_INTENT_RULES: tuple[tuple[IntentType, re.Pattern[str]], ...] = tuple(
    (intent, re.compile(pattern, re.IGNORECASE))
    for intent, pattern in (
        (IntentType.PRICE_INQUIRY, r"\b(price|cost|how much|expensive|cheap|afford)\b"),
        (IntentType.PROPERTY_FEATURES, r"\b(bedrooms?|bathrooms?|beds?|baths?|rooms?)\b"),
        (IntentType.LOCATION_INQUIRY, r"\b(where|location|address|directions?|near|close to)\b"),
        (IntentType.AVAILABILITY_CHECK, r"\b(available|for sale|on market|listings?)\b"),
        (IntentType.SCHOOL_INFO, r"\b(schools?|education|district|rating)\b"),
        (IntentType.AGENT_CONTACT, r"\b(agent|realtor|contact|call|email|reach)\b"),
        (IntentType.SCHEDULING, r"\b(schedule|tour|visit|see|showing|appointment)\b"),
        (IntentType.COMPARISON, r"\b(compare|versus|vs|similar|like|comps?)\b"),
        (IntentType.MARKET_ANALYSIS, r"\b(market|trend|statistics?|average|median)\b"),
        (IntentType.AREA_INFO, r"\b(neighborhood|area|community|amenities)\b"),
    )
)

_ACTION_RULES = tuple(
    (action, re.compile(pattern, re.IGNORECASE))
    for action, pattern in (
        ("search", r"\b(show|find|search|look for|get|list)\b"),
        ("explain", r"\b(tell|explain|describe|what|how|why)\b"),
        ("schedule", r"\b(schedule|book|arrange|set up)\b"),
        ("contact", r"\b(contact|call|email|reach out)\b"),
    )
)

_HIGH_URGENCY = {IntentType.AGENT_CONTACT, IntentType.SCHEDULING}

_LISTING_ID = re.compile(
    r"\b(?:mls|listing|property|id)\s*(?:#|number|no\.?)?\s*:?\s*([A-Za-z]*\d[A-Za-z0-9-]{3,})\b"
    r"|#\s*([A-Za-z]*\d[A-Za-z0-9-]{3,})\b",
    re.IGNORECASE,
)
_PRICE = re.compile(
    r"\$\s*([\d,]+(?:\.\d+)?)\s*(k|m|thousand|million)?\b|\b(\d+(?:\.\d+)?)\s*(k|m|thousand|million)\b",
    re.IGNORECASE,
)
_BEDROOMS = re.compile(r"(\d+)\s*(?:-\s*)?(?:bed|bedroom|bedrooms|br|bd)\b", re.IGNORECASE)

PROPERTY_TYPES = ("townhouse", "condo", "apartment", "house", "land")
_MULTIPLIERS = {"k": 1_000, "thousand": 1_000, "m": 1_000_000, "million": 1_000_000}


@dataclass
class IntentAnalysis:
    type: IntentType = IntentType.UNKNOWN
    action: Optional[str] = None
    urgency: str = "normal"
    entities: dict[str, Any] = field(default_factory=dict)

    @property
    def requires_agent(self) -> bool:
        return self.type in _HIGH_URGENCY

    def as_dict(self) -> dict[str, Any]:
        return {
            "type": str(self.type),
            "action": self.action,
            "urgency": self.urgency,
            "entities": dict(self.entities),
        }


def parse_price(amount: str, suffix: str | None) -> int:
    value = float(amount.replace(",", ""))
    if suffix:
        value *= _MULTIPLIERS[suffix.lower()]
    return int(value)


def extract_entities(question: str, known_cities: list[str] | tuple[str, ...] = ()) -> dict[str, Any]:
    entities: dict[str, Any] = {}

    listing = _LISTING_ID.search(question)
    if listing:
        entities["listing_id"] = listing.group(1) or listing.group(2)

    for match in _PRICE.finditer(question):
        if match.group(1):
            entities["price"] = parse_price(match.group(1), match.group(2))
        else:
            entities["price"] = parse_price(match.group(3), match.group(4))
        break

    bedrooms = _BEDROOMS.search(question)
    if bedrooms:
        entities["bedrooms"] = int(bedrooms.group(1))

    lowered = question.lower()
    for city in known_cities:
        if re.search(rf"\b{re.escape(city.lower())}\b", lowered):
            entities["city"] = city
            break

    for ptype in PROPERTY_TYPES:
        if ptype in lowered:
            entities["property_type"] = ptype
            break

    return entities


def analyze_intent(question: str, known_cities: list[str] | tuple[str, ...] = ()) -> IntentAnalysis:
    analysis = IntentAnalysis()
    for intent, pattern in _INTENT_RULES:
        if pattern.search(question):
            analysis.type = intent
            break
    if analysis.type in _HIGH_URGENCY:
        analysis.urgency = "high"

    for action, pattern in _ACTION_RULES:
        if pattern.search(question):
            analysis.action = action
            break

    analysis.entities = extract_entities(question, known_cities)
    return analysis
