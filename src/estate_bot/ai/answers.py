"""Deterministic answers built straight from listing data (no tokens spent)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from estate_bot.ai.data_mapper import DataMapping
from estate_bot.ai.intent import IntentAnalysis
from estate_bot.ai.tools.formatting import money, street_of
from estate_bot.core.types import IntentType
from estate_bot.data.service import DataService, Listing
from estate_bot.log import get_logger

logger = get_logger(__name__)

DATA_ANSWERABLE = frozenset(
    {
        IntentType.PRICE_INQUIRY,
        IntentType.PROPERTY_FEATURES,
        IntentType.LOCATION_INQUIRY,
        IntentType.AVAILABILITY_CHECK,
        IntentType.SCHOOL_INFO,
        IntentType.MARKET_ANALYSIS,
        IntentType.COMPARISON,
    }
)


@dataclass
class DataAnswer:
    answer: str
    confidence: float
    data: Any = None


def can_answer_with_data(intent: IntentAnalysis, mapping: DataMapping, threshold: float) -> bool:
    if intent.type not in DATA_ANSWERABLE or not mapping.matched_sources:
        return False
    return mapping.best_confidence >= threshold


def _line(prop: Listing) -> str:
    return (
        f"{street_of(prop) or 'Property ' + str(prop.get('listing_id'))} - {money(prop.get('list_price'))} "
        f"({int(prop.get('bedrooms_total') or 0)} bed, {float(prop.get('bathrooms_total') or 0):.1f} bath, "
        f"{int(float(prop.get('living_area') or 0)):,} sqft)"
    )


class DataAnswerer:
    """One generator per intent; each returns None when the data can't answer."""

    def __init__(self, data: DataService):
        self._data = data

    async def answer(self, question: str, intent: IntentAnalysis, mapping: DataMapping) -> Optional[DataAnswer]:
        entities = intent.entities
        match intent.type:
            case IntentType.PRICE_INQUIRY:
                result = await self.generate_price(entities)
            case IntentType.PROPERTY_FEATURES:
                result = await self.generate_features(entities)
            case IntentType.AVAILABILITY_CHECK:
                result = await self.generate_availability(entities)
            case IntentType.MARKET_ANALYSIS:
                result = await self.generate_market(entities)
            case IntentType.SCHOOL_INFO:
                result = await self.generate_schools(entities)
            case IntentType.COMPARISON:
                result = await self.generate_comparison(entities)
            case _:
                result = await self.generate_generic(entities, mapping)
        if result is not None:
            logger.debug("data_answer", intent=str(intent.type), confidence=result.confidence)
        return result

    async def generate_price(self, entities: dict[str, Any]) -> Optional[DataAnswer]:
        if entities.get("listing_id"):
            prop = await self._data.get_property(entities["listing_id"])
            if prop:
                return DataAnswer(
                    f"The property at {street_of(prop)} is listed at {money(prop.get('list_price'))}. "
                    f"It features {int(prop.get('bedrooms_total') or 0)} bedrooms and "
                    f"{float(prop.get('bathrooms_total') or 0):.1f} bathrooms with "
                    f"{int(float(prop.get('living_area') or 0)):,} square feet of living space.",
                    0.95,
                    prop,
                )
        elif entities.get("city"):
            city = entities["city"]
            average = await self._data.get_quick_stat("average_price", {"city": city})
            price_range = await self._data.get_quick_stat("price_range", {"city": city})
            if average and price_range:
                return DataAnswer(
                    f"In {city}, the average home price is {money(average)}, with prices ranging from "
                    f"{money(price_range['min_price'])} to {money(price_range['max_price'])}.",
                    0.85,
                    {"average": average, "range": price_range},
                )
        return None

    async def generate_features(self, entities: dict[str, Any]) -> DataAnswer:
        criteria: dict[str, Any] = {}
        if entities.get("bedrooms"):
            criteria["min_bedrooms"] = entities["bedrooms"]
        if entities.get("city"):
            criteria["city"] = entities["city"]
        if entities.get("price"):
            criteria["max_price"] = entities["price"]

        properties = await self._data.search_properties(criteria)
        if not properties:
            return DataAnswer("No properties found matching your criteria.", 0.80)

        lines = [f"I found {len(properties)} properties matching your criteria:", ""]
        lines.extend(f"• {_line(p)}" for p in properties[:3])
        if len(properties) > 3:
            lines.append(f"\n...and {len(properties) - 3} more properties. Would you like to see more details?")
        return DataAnswer("\n".join(lines), 0.90, properties)

    async def generate_availability(self, entities: dict[str, Any]) -> Optional[DataAnswer]:
        filters = {k: entities[k] for k in ("city", "property_type") if entities.get(k)}
        total = await self._data.get_quick_stat("total_active", filters)
        if total is None:
            return None
        answer = f"There are currently {total} active listings"
        if filters.get("city"):
            answer += f" in {filters['city']}"
        if filters.get("property_type"):
            answer += f" for {filters['property_type']} properties"
        answer += ". Would you like to narrow your search with specific criteria?"
        return DataAnswer(answer, 0.85, {"total": total})

    async def generate_market(self, entities: dict[str, Any]) -> Optional[DataAnswer]:
        area = entities.get("city")
        analytics = await self._data.get_market_analytics(area)
        if not analytics:
            return None
        latest = analytics[0]
        lines = ["Market Analysis:", ""]
        if area:
            lines.append(f"For {area}:")
        lines.extend(
            [
                f"• Average Price: {money(latest.get('avg_price'))}",
                f"• Median Price: {money(latest.get('median_price'))}",
                f"• Total Listings: {int(latest.get('total_listings') or 0)}",
                f"• Avg Days on Market: {int(latest.get('avg_dom') or 0)}",
            ]
        )
        return DataAnswer("\n".join(lines), 0.88, analytics)

    async def generate_schools(self, entities: dict[str, Any]) -> DataAnswer:
        if entities.get("listing_id"):
            schools = await self._data.get_property_schools(entities["listing_id"])
            if schools:
                lines = ["Schools for this property:", ""]
                for school in schools:
                    lines.append(
                        f"• {school.get('school_name', 'School')} ({school.get('school_type', 'n/a')}) - "
                        f"Rating: {school.get('school_rating', 'n/a')}, Grades: {school.get('school_grades', 'n/a')}, "
                        f"Distance: {float(school.get('distance_miles') or 0):.1f} miles"
                    )
                return DataAnswer("\n".join(lines), 0.92, schools)
        return DataAnswer("School information not available for this property.", 0.70)

    async def generate_comparison(self, entities: dict[str, Any]) -> Optional[DataAnswer]:
        if not entities.get("listing_id"):
            return None
        subject = await self._data.get_property(entities["listing_id"])
        if not subject:
            return None
        comparables = await self._data.get_comparables(subject, 3)
        if not comparables:
            return None
        lines = [f"Comparable properties to {street_of(subject)}:", ""]
        for comp in comparables:
            lines.append(
                f"• {street_of(comp)} - {money(comp.get('list_price'))} "
                f"({float(comp.get('distance_miles') or 0):.1f} miles away, "
                f"{int(comp.get('similarity_score') or 0)}% similarity)"
            )
        return DataAnswer("\n".join(lines), 0.86, {"subject": subject, "comparables": comparables})

    async def generate_generic(self, entities: dict[str, Any], mapping: DataMapping) -> Optional[DataAnswer]:
        """Run the first suggested query approach when every parameter it needs is known."""
        if not mapping.suggested_queries:
            return None
        approach = mapping.suggested_queries[0]
        known = dict(mapping.extraction_hints)
        if entities.get("city"):
            known["city"] = entities["city"]
        if entities.get("bedrooms"):
            known["min_bedrooms"] = entities["bedrooms"]
        if entities.get("price"):
            known["max_price"] = entities["price"]
        if entities.get("listing_id"):
            known["listing_id"] = entities["listing_id"]
        params = {p: known[p] for p in approach.parameters if p in known}
        if len(params) != len(approach.parameters):
            return None

        results: list[dict[str, Any]] = []
        match approach.key:
            case "find_properties_by_criteria":
                results = await self._data.search_properties(params)
            case "get_area_market_stats":
                results = await self._data.get_market_analytics(params["city"])
            case "get_property_schools":
                results = await self._data.get_property_schools(params["listing_id"])
            case "find_comparable_properties":
                subject = await self._data.get_property(params["listing_id"])
                results = await self._data.get_comparables(subject, 3) if subject else []
        if not results:
            return None

        answer = f"Based on your query, I found {len(results)} results. Here are the highlights:\n"
        return DataAnswer(answer + self.format_results(results), 0.75, results)

    @staticmethod
    def format_results(results: list[dict[str, Any]]) -> str:
        first = results[0]
        if "listing_id" in first and "list_price" in first:
            return "\n".join(
                f"• {street_of(p) or 'Property ' + str(p['listing_id'])} - {money(p.get('list_price'))}"
                for p in results[:3]
            )
        if "avg_price" in first:
            text = f"Average Price: {money(first['avg_price'])}"
            if "total_listings" in first:
                text += f"\nTotal Listings: {int(first['total_listings'])}"
            return text
        return "\n".join(f"{k}: {v}" for k, v in first.items())

    async def gather_relevant_data(self, entities: dict[str, Any]) -> dict[str, Any]:
        """Facts handed to the AI stage alongside the question."""
        data: dict[str, Any] = {}
        if entities.get("listing_id"):
            prop = await self._data.get_property(entities["listing_id"])
            if prop:
                data["property"] = prop
        if entities.get("city"):
            data["market_stats"] = await self._data.get_market_analytics(entities["city"])
            data["neighborhood"] = await self._data.get_neighborhood_stats(entities["city"])
        return data
