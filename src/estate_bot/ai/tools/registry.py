"""Tool registry: the fixed catalogue of listing tools offered to providers."""

from __future__ import annotations

from estate_bot.ai.tools.base import ToolSpec
from estate_bot.core.types import ToolName
from estate_bot.data.service import STAT_TYPES, TIMEFRAMES
from estate_bot.log import get_logger

logger = get_logger(__name__)

PROPERTY_CATEGORIES = ("hvac", "rooms", "financial", "features", "history", "location", "schools")
INQUIRY_TYPES = ("general", "property_question", "buying", "selling", "rental")

TOOL_SPECS: tuple[ToolSpec, ...] = (
    ToolSpec(
        ToolName.SEARCH_PROPERTIES,
        "Search active property listings. Filters given here are merged with the user's "
        "earlier search criteria, so only pass what the user changed. Results carry a "
        "reference_number the user can refer to (\"number 2\").",
        {
            "type": "object",
            "properties": {
                "city": {"type": "string", "description": "City name, e.g. 'Boston'"},
                "neighborhood": {"type": "string", "description": "Neighborhood name"},
                "min_price": {"type": "integer", "description": "Minimum list price in dollars"},
                "max_price": {"type": "integer", "description": "Maximum list price in dollars"},
                "min_bedrooms": {"type": "integer", "description": "Minimum number of bedrooms"},
                "min_bathrooms": {"type": "number", "description": "Minimum number of bathrooms"},
                "property_type": {
                    "type": "string",
                    "description": "Property type, e.g. 'Condo', 'Single Family', 'Townhouse'",
                },
                "min_sqft": {"type": "integer", "description": "Minimum living area in square feet"},
                "max_sqft": {"type": "integer", "description": "Maximum living area in square feet"},
                "sort_by": {
                    "type": "string",
                    "enum": ["price", "date", "bedrooms", "sqft"],
                    "description": "Sort field",
                },
                "sort_order": {"type": "string", "enum": ["asc", "desc"], "description": "Sort direction"},
                "limit": {
                    "type": "integer",
                    "description": "Maximum results (default 5, max 10)",
                    "default": 5,
                },
            },
        },
    ),
    ToolSpec(
        ToolName.GET_MARKET_STATS,
        "Get a market statistic such as the number of active listings, average or median "
        "price, price range or inventory breakdown, optionally for one city or property type.",
        {
            "type": "object",
            "properties": {
                "stat_type": {"type": "string", "enum": list(STAT_TYPES), "description": "Statistic to compute"},
                "city": {"type": "string", "description": "Limit to a city"},
                "property_type": {"type": "string", "description": "Limit to a property type"},
            },
            "required": ["stat_type"],
        },
    ),
    ToolSpec(
        ToolName.GET_PROPERTY_DETAILS,
        "Get the full record of one listing by listing_id. The property becomes the active "
        "property for follow-up questions (taxes, heating, rooms ...).",
        {
            "type": "object",
            "properties": {
                "listing_id": {"type": "string", "description": "MLS listing ID"},
                "include_photos": {"type": "boolean", "description": "Include photo URLs", "default": False},
                "include_schools": {"type": "boolean", "description": "Include nearby schools", "default": False},
            },
            "required": ["listing_id"],
        },
    ),
    ToolSpec(
        ToolName.GET_NEIGHBORHOOD_INFO,
        "Get listing statistics (count, average price, price range, average size) for a neighborhood or city.",
        {
            "type": "object",
            "properties": {
                "neighborhood": {"type": "string", "description": "Neighborhood or city name"},
            },
            "required": ["neighborhood"],
        },
    ),
    ToolSpec(
        ToolName.GET_PRICE_TRENDS,
        "Get monthly price change trends, optionally for a city or property type.",
        {
            "type": "object",
            "properties": {
                "city": {"type": "string", "description": "City name"},
                "property_type": {"type": "string", "description": "Property type"},
                "timeframe": {
                    "type": "string",
                    "enum": list(TIMEFRAMES),
                    "description": "Period to analyse",
                    "default": "90d",
                },
            },
        },
    ),
    ToolSpec(
        ToolName.FIND_SIMILAR_PROPERTIES,
        "Find active listings comparable to a given listing (similar price, size, type and location).",
        {
            "type": "object",
            "properties": {
                "listing_id": {"type": "string", "description": "Listing to compare against"},
                "count": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": 6,
                    "description": "Number of comparables (1-6)",
                    "default": 3,
                },
            },
            "required": ["listing_id"],
        },
    ),
    ToolSpec(
        ToolName.TEXT_SEARCH,
        "Free-text search over addresses, neighborhoods and descriptions.",
        {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search text, e.g. 'Phillips St' or 'roof deck'"},
                "limit": {"type": "integer", "maximum": 10, "description": "Maximum results", "default": 5},
            },
            "required": ["query"],
        },
    ),
    ToolSpec(
        ToolName.SCHEDULE_TOUR,
        "Request a showing of a listing. Requires the user's name, email and phone.",
        {
            "type": "object",
            "properties": {
                "listing_id": {"type": "string", "description": "Listing to tour"},
                "name": {"type": "string", "description": "Full name"},
                "email": {"type": "string", "description": "Email address"},
                "phone": {"type": "string", "description": "Phone number"},
                "preferred_date": {"type": "string", "description": "Preferred date, e.g. '2024-06-01'"},
                "preferred_time": {"type": "string", "description": "Preferred time, e.g. 'afternoon'"},
                "message": {"type": "string", "description": "Extra notes for the agent"},
            },
            "required": ["listing_id", "name", "email", "phone"],
        },
    ),
    ToolSpec(
        ToolName.CONTACT_AGENT,
        "Send a message to an agent on the user's behalf.",
        {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Full name"},
                "email": {"type": "string", "description": "Email address"},
                "phone": {"type": "string", "description": "Phone number"},
                "message": {"type": "string", "description": "Message for the agent"},
                "listing_id": {"type": "string", "description": "Listing the question is about"},
                "inquiry_type": {
                    "type": "string",
                    "enum": list(INQUIRY_TYPES),
                    "description": "Kind of inquiry",
                    "default": "general",
                },
            },
            "required": ["name", "email", "message"],
        },
    ),
    ToolSpec(
        ToolName.RESOLVE_PROPERTY_REFERENCE,
        "Resolve a reference to a previously shown listing ('number 3', 'the first one', "
        "'70 Phillips', 'the cheapest') and return its details.",
        {
            "type": "object",
            "properties": {
                "reference": {"type": "string", "description": "The user's reference text"},
            },
            "required": ["reference"],
        },
    ),
    ToolSpec(
        ToolName.GET_PROPERTY_CATEGORY,
        "Get one category of data (hvac, rooms, financial, features, history, location, "
        "schools) for the active property being discussed.",
        {
            "type": "object",
            "properties": {
                "category": {"type": "string", "enum": list(PROPERTY_CATEGORIES), "description": "Data category"},
            },
            "required": ["category"],
        },
    ),
)


class ToolRegistry:
    """Lookup of tool specs by name, with per-provider wire formats."""

    def __init__(self, specs: tuple[ToolSpec, ...] = TOOL_SPECS):
        self._specs: dict[ToolName, ToolSpec] = {}
        for spec in specs:
            self._specs[spec.name] = spec
            logger.debug("tool_registered", tool_name=str(spec.name))

    def get(self, name: str) -> ToolSpec | None:
        try:
            return self._specs.get(ToolName(name))
        except ValueError:
            return None

    def get_tools_by_names(self, names: list[str]) -> list[ToolSpec]:
        return [spec for n in names if (spec := self.get(n)) is not None]

    def all_tools(self) -> list[ToolSpec]:
        return list(self._specs.values())

    def names(self) -> list[str]:
        return [str(name) for name in self._specs]
