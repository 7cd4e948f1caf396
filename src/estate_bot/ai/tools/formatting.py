"""Listing formatters shared by tool handlers and data answers."""

from __future__ import annotations

from typing import Any, Optional

from estate_bot.data.service import Listing


def money(value: Any) -> str:
    try:
        return f"${float(value or 0):,.0f}"
    except (TypeError, ValueError):
        return "$0"


def property_url(site_url: str, listing_id: Any) -> str:
    return f"{site_url.rstrip('/')}/property/{listing_id}/"


def street_of(prop: Listing) -> str:
    street = prop.get("street_address") or ""
    if not street and prop.get("street_number") and prop.get("street_name"):
        street = f"{prop['street_number']} {prop['street_name']}".strip()
    return street


def format_summary(prop: Listing, site_url: str) -> dict[str, Any]:
    street = street_of(prop)
    state = prop.get("state_or_province") or prop.get("state") or ""
    address = f"{street}, {prop.get('city', '')}, {state} {prop.get('postal_code', '')}"
    sqft = int(float(prop.get("living_area") or prop.get("building_area_total") or 0))
    return {
        "listing_id": str(prop["listing_id"]),
        "address": address.strip().strip(",").strip(),
        "street": street,
        "price": money(prop.get("list_price")),
        "bedrooms": int(prop.get("bedrooms_total") or 0),
        "bathrooms": float(prop.get("bathrooms_total") or 0),
        "sqft": f"{sqft:,}",
        "property_type": prop.get("property_type") or "Unknown",
        "status": prop.get("standard_status") or "Active",
        "property_url": property_url(site_url, prop["listing_id"]),
    }


def format_detail(prop: Listing, site_url: str) -> dict[str, Any]:
    detail = format_summary(prop, site_url)
    description = prop.get("public_remarks") or prop.get("property_description") or ""
    words = description.split()
    detail["description"] = " ".join(words[:100]) + ("..." if len(words) > 100 else "")
    detail["year_built"] = int(prop.get("year_built") or 0)
    detail["lot_size"] = prop.get("lot_size_area") or ""
    detail["garage"] = prop.get("garage_spaces") or 0
    detail["days_on_market"] = prop.get("days_on_market")
    photos = prop.get("photos") or []
    if photos:
        detail["photo_count"] = len(photos)
        detail["primary_photo"] = photos[0].get("media_url") if isinstance(photos[0], dict) else photos[0]
    if prop.get("schools"):
        detail["nearby_schools"] = list(prop["schools"])[:3]
    return detail


def format_comprehensive(prop: Listing, site_url: str) -> dict[str, Any]:
    formatted = format_detail(prop, site_url)

    hvac = [f"{label}: {prop[key]}" for key, label in (("heating", "Heating"), ("cooling", "Cooling")) if prop.get(key)]
    if hvac:
        formatted["hvac"] = ", ".join(hvac)
    if prop.get("tax_annual_amount"):
        formatted["annual_taxes"] = money(prop["tax_annual_amount"])
    if prop.get("association_fee"):
        frequency = prop.get("association_fee_frequency") or "monthly"
        formatted["hoa_fee"] = f"{money(prop['association_fee'])}/{frequency}"
    for source, target in (("appliances", "appliances"), ("flooring", "flooring"), ("parking_features", "parking")):
        if prop.get(source):
            formatted[target] = prop[source]

    rooms = prop.get("rooms")
    if isinstance(rooms, list) and rooms:
        room_list = []
        for room in rooms:
            text = room.get("room_type") or "Room"
            if room.get("room_dimensions"):
                text += f" ({room['room_dimensions']})"
            if room.get("room_level"):
                text += f" - Level {room['room_level']}"
            room_list.append(text)
        formatted["rooms_list"] = room_list

    history = prop.get("price_history")
    if isinstance(history, list) and history:
        formatted["price_changes"] = [
            {
                "date": str(change.get("event_date") or ""),
                "from": money(change["old_price"]) if change.get("old_price") else None,
                "to": money(change["new_price"]) if change.get("new_price") else None,
            }
            for change in history[:3]
        ]

    schools = {
        level: prop[key]
        for level, key in (("elementary", "elementary_school"), ("middle", "middle_school"), ("high", "high_school"))
        if prop.get(key)
    }
    if schools:
        formatted["schools"] = schools

    agent = prop.get("agent")
    if isinstance(agent, dict) and agent:
        formatted["listing_agent"] = {
            "name": _first(agent, "agent_full_name", "name") or "",
            "phone": _first(agent, "agent_phone", "phone") or "",
            "email": _first(agent, "agent_email", "email") or "",
        }
    if prop.get("open_houses"):
        formatted["open_houses"] = prop["open_houses"]
    return formatted


def _first(prop: Listing, *keys: str) -> Optional[Any]:
    for key in keys:
        if prop.get(key) is not None:
            return prop[key]
    return None


def extract_category(prop: Listing, category: str) -> dict[str, Any] | list[Any]:
    """Category-scoped fields of a full snapshot, with missing values dropped."""
    match category:
        case "hvac":
            data = {
                "heating": _first(prop, "heating", "heating_yn"),
                "cooling": _first(prop, "cooling", "cooling_yn"),
                "fuel_type": prop.get("heating_fuel"),
                "water_heater": prop.get("water_heater"),
                "utilities": prop.get("utilities"),
                "electric": prop.get("electric"),
                "sewer": prop.get("sewer"),
                "water_source": prop.get("water_source"),
            }
        case "rooms":
            return list(prop.get("rooms") or [])
        case "financial":
            data = {
                key: prop.get(key)
                for key in (
                    "tax_annual_amount",
                    "tax_year",
                    "association_fee",
                    "association_fee_frequency",
                    "association_fee_includes",
                    "assessed_value",
                    "special_assessment",
                )
            }
        case "features":
            data = {
                "interior_features": prop.get("interior_features"),
                "exterior_features": prop.get("exterior_features"),
                "appliances": prop.get("appliances"),
                "flooring": prop.get("flooring"),
                "basement": _first(prop, "basement", "basement_yn"),
                "fireplace": prop.get("fireplace_yn"),
                "fireplace_features": prop.get("fireplace_features"),
                "pool": prop.get("pool_private_yn"),
                "garage": prop.get("garage_yn"),
                "garage_spaces": prop.get("garage_spaces"),
                "parking_features": prop.get("parking_features"),
            }
        case "history":
            data = {
                "price_history": prop.get("price_history") or [],
                "original_list_price": prop.get("original_list_price"),
                "list_price": prop.get("list_price"),
                "original_entry_timestamp": _first(prop, "original_entry_timestamp", "listed_date"),
                "modification_timestamp": prop.get("modification_timestamp"),
                "days_on_market": prop.get("days_on_market"),
            }
        case "location":
            data = {
                "latitude": prop.get("latitude"),
                "longitude": prop.get("longitude"),
                "subdivision": _first(prop, "subdivision_name", "neighborhood"),
                "mls_area": prop.get("mls_area_major"),
                "directions": prop.get("directions"),
                "county": prop.get("county_or_parish"),
            }
        case "schools":
            data = {
                "elementary_school": prop.get("elementary_school"),
                "middle_school": prop.get("middle_school"),
                "high_school": prop.get("high_school"),
                "school_district": prop.get("school_district"),
                "nearby_schools": prop.get("schools"),
            }
        case _:
            return {}
    return {k: v for k, v in data.items() if v is not None}
