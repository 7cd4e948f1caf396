"""Maps a question onto the data sources and query approaches that could answer it."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from estate_bot.ai.intent import PROPERTY_TYPES, parse_price


@dataclass(frozen=True)
class DataSource:
    key: str
    patterns: tuple[str, ...]
    key_fields: tuple[str, ...]
    description: str


@dataclass(frozen=True)
class QueryApproach:
    key: str
    keywords: tuple[str, ...]
    parameters: tuple[str, ...]
    description: str


@dataclass
class SourceMatch:
    key: str
    confidence: float
    key_fields: tuple[str, ...]
    description: str


@dataclass
class DataMapping:
    matched_sources: dict[str, SourceMatch] = field(default_factory=dict)
    suggested_queries: list[QueryApproach] = field(default_factory=list)
    extraction_hints: dict[str, Any] = field(default_factory=dict)

    @property
    def best_confidence(self) -> float:
        return max((m.confidence for m in self.matched_sources.values()), default=0.0)


DATA_SOURCES = (
    DataSource(
        "property_details",
        (
            r"price of|listing price|how much|cost",
            r"bedroom|bathroom|bed|bath|rooms",
            r"square feet|sq ft|size|area",
            r"address|location|where is",
            r"property type|home type|style",
        ),
        ("listing_id", "list_price", "bedrooms_total", "bathrooms_total", "living_area",
         "street_address", "city", "state", "postal_code", "property_type"),
        "Main property listing information including price, size, and location",
    ),
    DataSource(
        "market_stats",
        (
            r"average price|avg price|median price",
            r"market trend|price trend|market analysis",
            r"days on market|dom|how long to sell",
            r"inventory|homes for sale|available properties",
            r"price per square foot|price/sqft",
        ),
        ("area", "period", "avg_price", "median_price", "total_listings", "avg_dom", "price_per_sqft"),
        "Market statistics and trend data for areas",
    ),
    DataSource(
        "neighborhood_data",
        (
            r"neighborhood|area|community|district",
            r"school|education|school district",
            r"amenities|nearby|close to|walkable",
            r"demographics|population|residents",
            r"crime|safety|safe area",
        ),
        ("neighborhood", "school_rating", "walkability_score", "crime_index", "median_income", "population"),
        "Neighborhood demographics, schools, and area information",
    ),
    DataSource(
        "agent_data",
        (
            r"agent|realtor|broker|representative",
            r"contact|call|email|reach",
            r"listing agent|seller agent",
            r"who is selling|who to contact",
        ),
        ("agent_id", "agent_name", "agent_email", "agent_phone", "office_name", "specialties"),
        "Real estate agent contact and profile information",
    ),
    DataSource(
        "comparables",
        (
            r"similar|comparable|comps|like this",
            r"sold for|recent sales|sold recently",
            r"compare|comparison|versus",
            r"homes like|properties like",
        ),
        ("subject_property", "comp_property", "similarity_score", "sold_price", "sold_date", "distance"),
        "Comparable property sales for valuation",
    ),
    DataSource(
        "user_preferences",
        (
            r"saved search|my searches|favorite",
            r"preferences|criteria|looking for",
            r"notify|alert|email me",
            r"wishlist|interested in",
        ),
        ("user_id", "search_criteria", "notification_frequency", "last_notified", "is_active"),
        "User saved searches and notification preferences",
    ),
    DataSource(
        "property_history",
        (
            r"price change|reduced|increased",
            r"history|previous|was listed",
            r"how long listed|when listed",
            r"status change|pending|sold",
        ),
        ("listing_id", "change_date", "old_price", "new_price", "old_status", "new_status"),
        "Property listing history and price changes",
    ),
)

QUERY_APPROACHES = (
    QueryApproach(
        "find_properties_by_criteria",
        ("find", "search", "looking for", "show me"),
        ("city", "min_bedrooms", "min_price", "max_price"),
        "Find active properties by city, bedrooms, and price range",
    ),
    QueryApproach(
        "get_area_market_stats",
        ("average", "market", "statistics", "trend"),
        ("city",),
        "Get market statistics for a specific area",
    ),
    QueryApproach(
        "get_recent_sales",
        ("sold", "recent sales", "closed"),
        ("city", "months_back"),
        "Get recently sold properties in an area",
    ),
    QueryApproach(
        "get_agent_listings",
        ("agent", "realtor", "broker"),
        ("agent_id",),
        "Get all active listings for a specific agent",
    ),
    QueryApproach(
        "get_property_schools",
        ("school", "education", "district"),
        ("listing_id",),
        "Get school information for a property",
    ),
    QueryApproach(
        "find_comparable_properties",
        ("similar", "comparable", "comps", "like"),
        ("listing_id",),
        "Find comparable properties based on size, beds, price, and location",
    ),
)

_NUMBERS = re.compile(r"\b\d+\b")
_PRICES = re.compile(r"\$([\d,]+)\s*(k|m)?\b|\b(\d+)(k|m)\b", re.IGNORECASE)
_CAPITALIZED = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\b")
_HINT_PROPERTY_TYPES = PROPERTY_TYPES + ("single family", "multi family")


class DataReferenceMapper:
    def __init__(
        self,
        sources: tuple[DataSource, ...] = DATA_SOURCES,
        approaches: tuple[QueryApproach, ...] = QUERY_APPROACHES,
    ):
        self._sources = [
            (source, [re.compile(p, re.IGNORECASE) for p in source.patterns]) for source in sources
        ]
        self._approaches = approaches

    def map_question(self, question: str) -> DataMapping:
        mapping = DataMapping()
        for source, patterns in self._sources:
            for pattern in patterns:
                if pattern.search(question):
                    mapping.matched_sources[source.key] = SourceMatch(
                        key=source.key,
                        confidence=self.pattern_confidence(question, pattern),
                        key_fields=source.key_fields,
                        description=source.description,
                    )
                    break
        mapping.suggested_queries = self._matching_approaches(question)
        mapping.extraction_hints = self.extract_hints(question)
        return mapping

    @staticmethod
    def pattern_confidence(question: str, pattern: re.Pattern[str]) -> float:
        """Share of the question covered by matches, plus a boost for narrow patterns."""
        matches = [m.group(0) for m in pattern.finditer(question)]
        if not matches or not question:
            return 0.0
        coverage = len(" ".join(matches)) / len(question)
        boost = 0.1 if pattern.pattern.count("|") > 3 else 0.2
        return min(1.0, coverage + boost)

    def _matching_approaches(self, question: str) -> list[QueryApproach]:
        lowered = question.lower()
        return [a for a in self._approaches if any(k in lowered for k in a.keywords)]

    @staticmethod
    def extract_hints(question: str) -> dict[str, Any]:
        hints: dict[str, Any] = {}
        numbers = _NUMBERS.findall(question)
        if numbers:
            hints["numbers"] = numbers
        prices = []
        for match in _PRICES.finditer(question):
            if match.group(1):
                prices.append(parse_price(match.group(1), match.group(2)))
            else:
                prices.append(parse_price(match.group(3), match.group(4)))
        if prices:
            hints["prices"] = prices
        locations = _CAPITALIZED.findall(question)
        if locations:
            hints["possible_locations"] = locations
        lowered = question.lower()
        for ptype in _HINT_PROPERTY_TYPES:
            if ptype in lowered:
                hints["property_type"] = ptype
                break
        return hints

    @staticmethod
    def generate_ai_context(mapping: DataMapping) -> str:
        parts: list[str] = []
        if mapping.matched_sources:
            parts.append("Available data sources for this query:")
            for match in mapping.matched_sources.values():
                parts.append(f"- {match.key} (confidence: {match.confidence * 100:.1f}%): {match.description}")
                parts.append("  Key fields: " + ", ".join(match.key_fields[:5]))
        if mapping.suggested_queries:
            parts.append("\nSuggested query approaches:")
            for approach in mapping.suggested_queries:
                parts.append(f"- {approach.description}")
                parts.append("  Required parameters: " + ", ".join(approach.parameters))
        if mapping.extraction_hints:
            parts.append("\nExtracted information from question:")
            for hint, values in mapping.extraction_hints.items():
                if isinstance(values, list):
                    parts.append(f"- {hint}: " + ", ".join(str(v) for v in values))
                else:
                    parts.append(f"- {hint}: {values}")
        return "\n".join(parts)
