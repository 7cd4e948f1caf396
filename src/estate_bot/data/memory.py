"""In-memory DataService backed by a YAML listings file."""

from __future__ import annotations

import math
import statistics
from collections import Counter, defaultdict
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Optional

import yaml

from estate_bot.data.service import Listing
from estate_bot.log import get_logger

logger = get_logger(__name__)

_TIMEFRAME_DAYS = {"30d": 30, "90d": 90, "6m": 182, "1y": 365}
_SORT_FIELDS = {
    "price": "list_price",
    "date": "listed_date",
    "bedrooms": "bedrooms_total",
    "sqft": "living_area",
}


def _to_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def _haversine_miles(a: Listing, b: Listing) -> Optional[float]:
    try:
        lat1, lon1 = math.radians(float(a["latitude"])), math.radians(float(a["longitude"]))
        lat2, lon2 = math.radians(float(b["latitude"])), math.radians(float(b["longitude"]))
    except (KeyError, TypeError, ValueError):
        return None
    dlat, dlon = lat2 - lat1, lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 3958.8 * 2 * math.asin(math.sqrt(h))


class InMemoryListingService:
    """Serves listings held in memory. ``today`` is injectable for deterministic stats."""

    def __init__(self, listings: list[Listing], today: Optional[date] = None):
        self._listings = [dict(item) for item in listings]
        self._today = today

    @classmethod
    def from_yaml(cls, path: str | Path) -> "InMemoryListingService":
        file = Path(path)
        if not file.exists():
            logger.warning("listings_file_missing", path=str(file))
            return cls([])
        data = yaml.safe_load(file.read_text(encoding="utf-8")) or {}
        listings = data.get("listings", []) if isinstance(data, dict) else data
        logger.info("listings_loaded", path=str(file), count=len(listings))
        return cls(listings)

    @property
    def today(self) -> date:
        return self._today or date.today()

    # -- filtering -------------------------------------------------------

    def _active(self) -> list[Listing]:
        return [p for p in self._listings if p.get("standard_status", "Active") == "Active"]

    @staticmethod
    def _matches(prop: Listing, criteria: dict[str, Any]) -> bool:
        def num(key: str) -> float:
            return float(prop.get(key) or 0)

        if criteria.get("listing_id") and str(prop.get("listing_id")) != str(criteria["listing_id"]):
            return False
        if criteria.get("city") and str(prop.get("city", "")).lower() != str(criteria["city"]).lower():
            return False
        if criteria.get("neighborhood") and (
            str(criteria["neighborhood"]).lower() not in str(prop.get("neighborhood", "")).lower()
        ):
            return False
        if criteria.get("property_type") and (
            str(criteria["property_type"]).lower() not in str(prop.get("property_type", "")).lower()
        ):
            return False
        if criteria.get("min_price") and num("list_price") < float(criteria["min_price"]):
            return False
        if criteria.get("max_price") and num("list_price") > float(criteria["max_price"]):
            return False
        if criteria.get("min_bedrooms") and num("bedrooms_total") < float(criteria["min_bedrooms"]):
            return False
        if criteria.get("min_bathrooms") and num("bathrooms_total") < float(criteria["min_bathrooms"]):
            return False
        if criteria.get("min_sqft") and num("living_area") < float(criteria["min_sqft"]):
            return False
        if criteria.get("max_sqft") and num("living_area") > float(criteria["max_sqft"]):
            return False
        return True

    def _filtered(self, filters: dict[str, Any]) -> list[Listing]:
        return [p for p in self._active() if self._matches(p, filters)]

    # -- DataService -----------------------------------------------------

    async def search_properties(self, criteria: dict[str, Any]) -> list[Listing]:
        results = self._filtered(criteria)
        sort_field = _SORT_FIELDS.get(criteria.get("sort_by") or "", "listed_date")
        reverse = (criteria.get("sort_order") or "desc").lower() == "desc"
        results.sort(key=lambda p: (p.get(sort_field) is None, p.get(sort_field) or 0), reverse=reverse)
        limit = criteria.get("limit")
        return results[: int(limit)] if limit else results

    async def get_property(self, listing_id: str) -> Optional[Listing]:
        for prop in self._listings:
            if str(prop.get("listing_id")) == str(listing_id):
                snapshot = dict(prop)
                listed = _to_date(prop.get("listed_date"))
                if listed and "days_on_market" not in snapshot:
                    snapshot["days_on_market"] = (self.today - listed).days
                return snapshot
        return None

    async def get_quick_stat(self, stat_type: str, filters: dict[str, Any]) -> Any:
        props = self._filtered(filters)
        prices = [float(p["list_price"]) for p in props if p.get("list_price")]
        match stat_type:
            case "total_active":
                return len(props)
            case "average_price":
                return round(statistics.fmean(prices)) if prices else None
            case "median_price":
                return round(statistics.median(prices)) if prices else None
            case "price_range":
                if not prices:
                    return None
                return {"min_price": min(prices), "max_price": max(prices)}
            case "inventory_by_type":
                return dict(Counter(str(p.get("property_type", "Unknown")) for p in props))
            case "inventory_by_city":
                return dict(Counter(str(p.get("city", "Unknown")) for p in props))
            case "new_listings_today":
                return sum(1 for p in props if _to_date(p.get("listed_date")) == self.today)
            case "price_reduced_today":
                return sum(
                    1
                    for p in props
                    for change in p.get("price_history") or []
                    if _to_date(change.get("event_date")) == self.today
                    and float(change.get("new_price") or 0) < float(change.get("old_price") or 0)
                )
            case _:
                return None

    async def get_market_analytics(self, area: Optional[str] = None) -> list[dict[str, Any]]:
        props = self._filtered({"city": area} if area else {})
        prices = [float(p["list_price"]) for p in props if p.get("list_price")]
        if not prices:
            return []
        doms = []
        for p in props:
            listed = _to_date(p.get("listed_date"))
            if listed:
                doms.append((self.today - listed).days)
        sqft_prices = [
            float(p["list_price"]) / float(p["living_area"])
            for p in props
            if p.get("list_price") and p.get("living_area")
        ]
        return [
            {
                "area": area or "All areas",
                "period": self.today.strftime("%Y-%m"),
                "avg_price": round(statistics.fmean(prices)),
                "median_price": round(statistics.median(prices)),
                "total_listings": len(props),
                "avg_dom": round(statistics.fmean(doms)) if doms else 0,
                "price_per_sqft": round(statistics.fmean(sqft_prices)) if sqft_prices else None,
            }
        ]

    async def get_property_schools(self, listing_id: str) -> list[dict[str, Any]]:
        prop = await self.get_property(listing_id)
        return list(prop.get("schools") or []) if prop else []

    async def get_comparables(self, subject: Listing, count: int = 3) -> list[Listing]:
        price = float(subject.get("list_price") or 0)
        beds = float(subject.get("bedrooms_total") or 0)
        sqft = float(subject.get("living_area") or 0)
        scored = []
        for prop in self._active():
            if str(prop.get("listing_id")) == str(subject.get("listing_id")):
                continue
            if subject.get("property_type") and prop.get("property_type") != subject.get("property_type"):
                continue
            p_price = float(prop.get("list_price") or 0)
            p_beds = float(prop.get("bedrooms_total") or 0)
            if abs(p_beds - beds) > 1 or not (price * 0.75 <= p_price <= price * 1.25):
                continue
            distance = _haversine_miles(subject, prop)
            if distance is not None and distance > 3:
                continue
            penalty = abs(p_price - price) / max(price, 1) * 100
            penalty += abs(p_beds - beds) * 10
            if sqft:
                penalty += abs(float(prop.get("living_area") or 0) - sqft) / sqft * 50
            penalty += (distance or 0) * 5
            comp = dict(prop)
            comp["distance_miles"] = round(distance, 1) if distance is not None else 0.0
            comp["similarity_score"] = max(0, round(100 - penalty))
            scored.append(comp)
        scored.sort(key=lambda c: c["similarity_score"], reverse=True)
        return scored[:count]

    async def get_neighborhood_stats(self, neighborhood: str) -> dict[str, Any]:
        needle = neighborhood.lower()
        props = [
            p
            for p in self._active()
            if needle in str(p.get("neighborhood", "")).lower() or needle == str(p.get("city", "")).lower()
        ]
        if not props:
            return {}

        def mean(key: str) -> float:
            values = [float(p[key]) for p in props if p.get(key)]
            return statistics.fmean(values) if values else 0.0

        prices = [float(p["list_price"]) for p in props if p.get("list_price")]
        return {
            "total_listings": len(props),
            "avg_price": mean("list_price"),
            "min_price": min(prices) if prices else 0,
            "max_price": max(prices) if prices else 0,
            "avg_bedrooms": mean("bedrooms_total"),
            "avg_bathrooms": mean("bathrooms_total"),
            "avg_sqft": mean("living_area"),
        }

    async def get_price_trends(self, criteria: dict[str, Any], timeframe: str) -> list[dict[str, Any]]:
        days = _TIMEFRAME_DAYS.get(timeframe)
        since = self.today - timedelta(days=days) if days else None
        buckets: dict[str, list[tuple[float, float]]] = defaultdict(list)
        for prop in self._filtered(criteria):
            for change in prop.get("price_history") or []:
                when = _to_date(change.get("event_date"))
                old, new = float(change.get("old_price") or 0), float(change.get("new_price") or 0)
                if not when or not old or (since and when < since):
                    continue
                buckets[when.strftime("%Y-%m")].append((new, (new - old) / old * 100))
        return [
            {
                "month": month,
                "avg_price": round(statistics.fmean(n for n, _ in rows)),
                "avg_change_percent": statistics.fmean(c for _, c in rows),
                "change_count": len(rows),
            }
            for month, rows in sorted(buckets.items(), reverse=True)
        ]

    async def text_search(self, query: str, limit: int = 5) -> list[Listing]:
        terms = [t for t in query.lower().split() if t]
        hits = []
        for prop in self._active():
            haystack = " ".join(
                str(prop.get(k, ""))
                for k in ("street_address", "city", "neighborhood", "property_type", "public_remarks")
            ).lower()
            score = sum(1 for t in terms if t in haystack)
            if score:
                hits.append((score, prop))
        hits.sort(key=lambda item: item[0], reverse=True)
        return [prop for _, prop in hits[:limit]]

    async def known_cities(self) -> list[str]:
        return sorted({str(p["city"]) for p in self._listings if p.get("city")})
