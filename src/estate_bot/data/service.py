"""Domain Data Service contract consumed by tools and data answers.

Records are plain dicts using MLS-style field names (``listing_id``, ``street_address``,
``list_price``, ``bedrooms_total``, ``bathrooms_total``, ``living_area`` ...). The service is
opaque to the rest of the bot: any backend that satisfies this protocol can be plugged in.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

Listing = dict[str, Any]

STAT_TYPES = (
    "total_active",
    "average_price",
    "median_price",
    "price_range",
    "inventory_by_type",
    "inventory_by_city",
    "new_listings_today",
    "price_reduced_today",
)

TIMEFRAMES = ("30d", "90d", "6m", "1y", "all")


class DataService(Protocol):
    async def search_properties(self, criteria: dict[str, Any]) -> list[Listing]:
        """Active listings matching the criteria, honouring ``limit``/``sort_by``/``sort_order``."""
        ...

    async def get_property(self, listing_id: str) -> Optional[Listing]:
        """Full snapshot of one listing, or None."""
        ...

    async def get_quick_stat(self, stat_type: str, filters: dict[str, Any]) -> Any:
        """One statistic from STAT_TYPES, or None when it cannot be computed."""
        ...

    async def get_market_analytics(self, area: Optional[str] = None) -> list[dict[str, Any]]:
        """Rows with ``avg_price``, ``median_price``, ``total_listings``, ``avg_dom``."""
        ...

    async def get_property_schools(self, listing_id: str) -> list[dict[str, Any]]:
        ...

    async def get_comparables(self, subject: Listing, count: int = 3) -> list[Listing]:
        """Similar listings, each with ``distance_miles`` and ``similarity_score`` (0-100)."""
        ...

    async def get_neighborhood_stats(self, neighborhood: str) -> dict[str, Any]:
        ...

    async def get_price_trends(self, criteria: dict[str, Any], timeframe: str) -> list[dict[str, Any]]:
        """Monthly rows with ``month``, ``avg_price``, ``avg_change_percent``, ``change_count``."""
        ...

    async def text_search(self, query: str, limit: int = 5) -> list[Listing]:
        ...

    async def known_cities(self) -> list[str]:
        ...
