"""Tool executor: dispatches model tool calls to listing-data handlers.

One executor is built per turn, bound to that turn's conversation context. Handler failures
never raise through the tool loop; they come back as ``ToolResult.fail`` so the model can
recover (ask for a missing field, re-run a search ...).
"""

from __future__ import annotations

import re
from typing import Any, Awaitable, Callable, Optional

from estate_bot.ai.tools.base import ToolResult
from estate_bot.ai.tools.formatting import (
    extract_category,
    format_comprehensive,
    format_detail,
    format_summary,
    money,
)
from estate_bot.ai.tools.registry import INQUIRY_TYPES, PROPERTY_CATEGORIES
from estate_bot.core.context import ConversationContext
from estate_bot.core.types import ToolName
from estate_bot.data.service import STAT_TYPES, TIMEFRAMES, DataService
from estate_bot.errors import ReferenceUnresolved, ToolExecutionError, UnknownTool
from estate_bot.log import get_logger
from estate_bot.storage.conversation_repo import ConversationRepository
from estate_bot.storage.lead_repo import LeadRepository
from estate_bot.storage.models import LeadSubmission

logger = get_logger(__name__)

Handler = Callable[[dict[str, Any]], Awaitable[ToolResult]]

_EMAIL = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

CATEGORY_DESCRIPTIONS = {
    "hvac": "Heating, cooling, utilities",
    "rooms": "Room dimensions and features",
    "financial": "Taxes, HOA, assessments",
    "features": "Interior/exterior features",
    "history": "Price changes, status changes",
    "location": "Coordinates, subdivision, directions",
    "schools": "Assigned schools and district",
}

_INQUIRY_LABELS = {
    "property_question": "Property Question",
    "buying": "Buying Inquiry",
    "selling": "Selling Inquiry",
    "rental": "Rental Inquiry",
}


def _int(value: Any, default: int) -> int:
    try:
        return abs(int(float(value)))
    except (TypeError, ValueError):
        return default


def _text(args: dict[str, Any], key: str) -> str:
    value = args.get(key)
    return str(value).strip() if value is not None else ""


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL.match(email))


def split_name(name: str) -> tuple[str, str]:
    parts = name.strip().split(" ", 1)
    return parts[0], parts[1] if len(parts) > 1 else ""


class ToolExecutor:
    """Runs tool calls for one conversation turn."""

    def __init__(
        self,
        data: DataService,
        context: ConversationContext,
        leads: Optional[LeadRepository] = None,
        conversations: Optional[ConversationRepository] = None,
        site_url: str = "https://example.com",
    ):
        self._data = data
        self._context = context
        self._leads = leads
        self._conversations = conversations
        self._site_url = site_url
        self._handlers: dict[ToolName, Handler] = {
            ToolName.SEARCH_PROPERTIES: self._search_properties,
            ToolName.GET_MARKET_STATS: self._get_market_stats,
            ToolName.GET_PROPERTY_DETAILS: self._get_property_details,
            ToolName.GET_NEIGHBORHOOD_INFO: self._get_neighborhood_info,
            ToolName.GET_PRICE_TRENDS: self._get_price_trends,
            ToolName.FIND_SIMILAR_PROPERTIES: self._find_similar_properties,
            ToolName.TEXT_SEARCH: self._text_search,
            ToolName.SCHEDULE_TOUR: self._schedule_tour,
            ToolName.CONTACT_AGENT: self._contact_agent,
            ToolName.RESOLVE_PROPERTY_REFERENCE: self._resolve_property_reference,
            ToolName.GET_PROPERTY_CATEGORY: self._get_property_category,
        }

    @property
    def handled(self) -> set[ToolName]:
        return set(self._handlers)

    async def execute(self, name: str, arguments: dict[str, Any] | None) -> ToolResult:
        try:
            tool = ToolName(name)
        except ValueError:
            logger.warning("unknown_tool", tool_name=name)
            return ToolResult.fail(f"Unknown tool: {name}", UnknownTool.code)

        args = arguments if isinstance(arguments, dict) else {}
        logger.info("tool_execute", tool_name=name, arguments=args)
        try:
            return await self._handlers[tool](args)
        except Exception as e:
            logger.error("tool_execution_error", tool_name=name, error=str(e))
            return ToolResult.fail(f"Error executing {name}: {e}", ToolExecutionError.code)

    # -- search ----------------------------------------------------------

    async def _search_properties(self, args: dict[str, Any]) -> ToolResult:
        criteria = self._context.update_search_criteria(args)
        query = dict(criteria)
        query["limit"] = min(_int(args.get("limit"), 5) or 5, 10)

        properties = await self._data.search_properties(query)
        if not properties:
            await self._context.save()
            return ToolResult.ok(
                {
                    "count": 0,
                    "properties": [],
                    "message": "No properties found matching your criteria.",
                    "criteria_used": query,
                }
            )

        formatted = []
        for index, prop in enumerate(properties, start=1):
            summary = format_summary(prop, self._site_url)
            summary["reference_number"] = index
            formatted.append(summary)
        self._context.record_shown_entities(formatted)
        await self._context.save()
        logger.debug("search_context_updated", criteria=criteria, shown=len(formatted))

        return ToolResult.ok({"count": len(formatted), "properties": formatted, "criteria_used": query})

    async def _text_search(self, args: dict[str, Any]) -> ToolResult:
        query = _text(args, "query")
        if not query:
            return ToolResult.fail("query is required")
        limit = min(_int(args.get("limit"), 5) or 5, 10)

        results = await self._data.text_search(query, limit)
        if not results:
            return ToolResult.ok(
                {"query": query, "count": 0, "properties": [], "message": f"No properties found matching '{query}'."}
            )
        formatted = [format_summary(p, self._site_url) for p in results]
        return ToolResult.ok({"query": query, "count": len(formatted), "properties": formatted})

    # -- market ----------------------------------------------------------

    async def _get_market_stats(self, args: dict[str, Any]) -> ToolResult:
        stat_type = _text(args, "stat_type") or "total_active"
        if stat_type not in STAT_TYPES:
            return ToolResult.fail(f"Unknown stat_type: {stat_type}")
        filters = {k: _text(args, k) for k in ("city", "property_type") if _text(args, k)}

        result = await self._data.get_quick_stat(stat_type, filters)
        if result is None:
            return ToolResult.fail(f"Unable to retrieve statistic: {stat_type}")

        formatted: dict[str, Any] = {"stat_type": stat_type, "filters": filters}
        match stat_type:
            case "total_active":
                formatted["total_listings"] = int(result)
                formatted["description"] = f"There are {result} active listings"
            case "average_price" | "median_price":
                label = stat_type.split("_")[0]
                formatted[stat_type] = float(result)
                formatted["formatted_price"] = money(result)
                formatted["description"] = f"The {label} listing price is {money(result)}"
            case "price_range":
                formatted["min_price"] = float(result["min_price"])
                formatted["max_price"] = float(result["max_price"])
                formatted["description"] = (
                    f"Prices range from {money(result['min_price'])} to {money(result['max_price'])}"
                )
            case "inventory_by_type" | "inventory_by_city":
                formatted["breakdown"] = result
            case "new_listings_today":
                formatted["new_today"] = int(result)
                formatted["description"] = f"{result} new listings were added today"
            case "price_reduced_today":
                formatted["reduced_today"] = int(result)
                formatted["description"] = f"{result} listings had price reductions today"
        return ToolResult.ok(formatted)

    async def _get_neighborhood_info(self, args: dict[str, Any]) -> ToolResult:
        neighborhood = _text(args, "neighborhood")
        if not neighborhood:
            return ToolResult.fail("neighborhood is required")

        stats = await self._data.get_neighborhood_stats(neighborhood)
        if not stats or not stats.get("total_listings"):
            return ToolResult.ok(
                {"neighborhood": neighborhood, "message": f"No active listings found in {neighborhood}."}
            )
        return ToolResult.ok(
            {
                "neighborhood": neighborhood,
                "total_listings": int(stats["total_listings"]),
                "average_price": money(stats.get("avg_price")),
                "price_range": f"{money(stats.get('min_price'))} - {money(stats.get('max_price'))}",
                "avg_bedrooms": round(float(stats.get("avg_bedrooms") or 0), 1),
                "avg_bathrooms": round(float(stats.get("avg_bathrooms") or 0), 1),
                "avg_sqft": f"{float(stats.get('avg_sqft') or 0):,.0f}",
            }
        )

    async def _get_price_trends(self, args: dict[str, Any]) -> ToolResult:
        timeframe = _text(args, "timeframe") or "90d"
        if timeframe not in TIMEFRAMES:
            return ToolResult.fail(f"Unknown timeframe: {timeframe}")
        criteria = {k: _text(args, k) for k in ("city", "property_type") if _text(args, k)}

        trends = await self._data.get_price_trends(criteria, timeframe)
        if not trends:
            return ToolResult.ok(
                {"timeframe": timeframe, "trends": [], "message": "No price change data for this period."}
            )
        return ToolResult.ok(
            {
                "timeframe": timeframe,
                "filters": criteria,
                "trends": [
                    {
                        "month": row["month"],
                        "avg_price": money(row.get("avg_price")),
                        "avg_change": f"{float(row.get('avg_change_percent') or 0):+.1f}%",
                        "changes": int(row.get("change_count") or 0),
                    }
                    for row in trends
                ],
            }
        )

    async def _find_similar_properties(self, args: dict[str, Any]) -> ToolResult:
        listing_id = _text(args, "listing_id")
        if not listing_id:
            return ToolResult.fail("listing_id is required")
        count = max(1, min(_int(args.get("count"), 3) or 3, 6))

        subject = await self._data.get_property(listing_id)
        if subject is None:
            return ToolResult.fail(f"Subject property not found: {listing_id}")

        comparables = await self._data.get_comparables(subject, count)
        similar = []
        for comp in comparables:
            summary = format_summary(comp, self._site_url)
            summary["similarity_score"] = f"{round(float(comp.get('similarity_score') or 0))}%"
            summary["distance_miles"] = round(float(comp.get("distance_miles") or 0), 1)
            similar.append(summary)

        result: dict[str, Any] = {
            "subject_property": format_summary(subject, self._site_url),
            "similar_count": len(similar),
            "similar_properties": similar,
        }
        if not similar:
            result["message"] = "No similar properties found in the area."
        return ToolResult.ok(result)

    # -- single property -------------------------------------------------

    async def _get_property_details(self, args: dict[str, Any]) -> ToolResult:
        listing_id = _text(args, "listing_id")
        if not listing_id:
            return ToolResult.fail("listing_id is required")

        prop = await self._data.get_property(listing_id)
        if prop is None:
            return ToolResult.fail(f"Property not found: {listing_id}")

        if args.get("include_schools") and not prop.get("schools"):
            prop["schools"] = await self._data.get_property_schools(listing_id)

        self._context.set_active_entity(listing_id, prop)
        await self._context.save()

        formatted = format_comprehensive(prop, self._site_url)
        if not args.get("include_photos"):
            formatted.pop("primary_photo", None)
        return ToolResult.ok(
            {
                "property": formatted,
                "has_full_data": True,
                "data_categories_available": CATEGORY_DESCRIPTIONS,
            }
        )

    async def _resolve_property_reference(self, args: dict[str, Any]) -> ToolResult:
        reference = _text(args, "reference")
        if not reference:
            return ToolResult.fail("reference is required")

        listing_id = self._context.resolve_reference(reference)
        if listing_id is None:
            return ToolResult.fail(
                f"Could not resolve reference: {reference}. Ask the user which property they mean, "
                "or show the property list again.",
                ReferenceUnresolved.code,
            )
        return await self._get_property_details({"listing_id": listing_id})

    async def _get_property_category(self, args: dict[str, Any]) -> ToolResult:
        category = _text(args, "category")
        if category not in PROPERTY_CATEGORIES:
            return ToolResult.fail(f"category must be one of: {', '.join(PROPERTY_CATEGORIES)}")

        snapshot = self._context.active_entity
        if not snapshot:
            return ToolResult.fail("No active property in context. Please ask about a specific property first.")

        data = extract_category(snapshot, category)
        if not data:
            return ToolResult.ok({"category": category, "message": f"No {category} data available for this property."})
        return ToolResult.ok({"category": category, "listing_id": self._context.active_entity_id, "data": data})

    # -- leads -----------------------------------------------------------

    async def _submission_property(self, listing_id: str) -> Optional[dict[str, Any]]:
        prop = await self._data.get_property(listing_id)
        return format_detail(prop, self._site_url) if prop else None

    async def _remember_contact(self, name: str, email: str, phone: str) -> None:
        self._context.merge_collected_info({"name": name, "email": email, "phone": phone})
        await self._context.save()
        if self._conversations is not None:
            await self._conversations.update_contact(
                self._context.conversation_id, {"name": name, "email": email, "phone": phone}
            )
            previous = await self._conversations.find_returning_visitor(
                email=email, phone=phone, exclude_id=self._context.conversation_id
            )
            if previous is not None:
                logger.info("returning_visitor", previous_conversation_id=previous.id)

    async def _save_lead(self, lead: LeadSubmission) -> Optional[int]:
        if self._leads is None:
            return None
        lead.conversation_id = self._context.conversation_id
        return await self._leads.save(lead)

    async def _schedule_tour(self, args: dict[str, Any]) -> ToolResult:
        for required in ("listing_id", "name", "email", "phone"):
            if not _text(args, required):
                return ToolResult.fail(f"{required} is required to schedule a tour")

        listing_id, name = _text(args, "listing_id"), _text(args, "name")
        email, phone = _text(args, "email"), _text(args, "phone")
        preferred_date, preferred_time = _text(args, "preferred_date"), _text(args, "preferred_time")
        if not is_valid_email(email):
            return ToolResult.fail("Please provide a valid email address")

        prop = await self._submission_property(listing_id)
        if prop is None:
            return ToolResult.fail(f"Property not found: {listing_id}")

        lines = []
        if preferred_date:
            lines.append(f"Preferred Date: {preferred_date}")
        if preferred_time:
            lines.append(f"Preferred Time: {preferred_time}")
        if _text(args, "message"):
            lines.append("\n" + _text(args, "message"))
        first, last = split_name(name)
        submission_id = await self._save_lead(
            LeadSubmission(
                form_type="tour",
                listing_id=listing_id,
                first_name=first,
                last_name=last,
                email=email,
                phone=phone,
                message="\n".join(lines).strip(),
            )
        )
        await self._remember_contact(name, email, phone)

        confirmation = f"Tour request submitted successfully! We'll contact {name} at {email} or {phone} to confirm the showing"
        if preferred_date:
            confirmation += f" for {preferred_date}"
        if preferred_time:
            confirmation += f" ({preferred_time})"
        return ToolResult.ok(
            {
                "submission_id": submission_id,
                "listing_id": listing_id,
                "property_address": prop["address"],
                "message": confirmation + ".",
                "next_steps": "The listing agent will review your request and contact you to confirm the tour time.",
            }
        )

    async def _contact_agent(self, args: dict[str, Any]) -> ToolResult:
        for required in ("name", "email", "message"):
            if not _text(args, required):
                return ToolResult.fail(f"{required} is required to contact an agent")

        name, email, phone = _text(args, "name"), _text(args, "email"), _text(args, "phone")
        message, listing_id = _text(args, "message"), _text(args, "listing_id")
        inquiry_type = _text(args, "inquiry_type") or "general"
        if inquiry_type not in INQUIRY_TYPES:
            inquiry_type = "general"
        if not is_valid_email(email):
            return ToolResult.fail("Please provide a valid email address")

        if listing_id and await self._submission_property(listing_id) is None:
            logger.debug("contact_listing_not_found", listing_id=listing_id)

        full_message = message
        if inquiry_type != "general":
            full_message = f"[{_INQUIRY_LABELS[inquiry_type]}]\n\n{message}"
        first, last = split_name(name)
        submission_id = await self._save_lead(
            LeadSubmission(
                form_type="contact",
                listing_id=listing_id or None,
                first_name=first,
                last_name=last,
                email=email,
                phone=phone,
                message=full_message,
                inquiry_type=inquiry_type,
            )
        )
        await self._remember_contact(name, email, phone)

        confirmation = f"Message sent successfully! An agent will respond to {name} at {email}"
        if phone:
            confirmation += f" or {phone}"
        return ToolResult.ok(
            {
                "submission_id": submission_id,
                "listing_id": listing_id,
                "inquiry_type": inquiry_type,
                "message": confirmation + " soon.",
                "next_steps": "An agent will review your message and respond within 1-2 business days.",
            }
        )
