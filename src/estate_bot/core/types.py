"""Shared types and enumerations."""

from __future__ import annotations

from enum import StrEnum


class QueryType(StrEnum):
    SIMPLE = "simple"
    PROPERTY_SEARCH = "property_search"
    MARKET_ANALYSIS = "market_analysis"
    GENERAL = "general"


class ResponseSource(StrEnum):
    FAQ = "faq"
    CACHE = "cache"
    DATABASE = "database"
    TEMPLATE = "template"
    AI = "ai"
    FALLBACK = "fallback"


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


class ConversationStatus(StrEnum):
    ACTIVE = "active"
    CLOSED = "closed"


class IntentType(StrEnum):
    PRICE_INQUIRY = "price_inquiry"
    PROPERTY_FEATURES = "property_features"
    LOCATION_INQUIRY = "location_inquiry"
    AVAILABILITY_CHECK = "availability_check"
    SCHOOL_INFO = "school_info"
    AGENT_CONTACT = "agent_contact"
    SCHEDULING = "scheduling"
    COMPARISON = "comparison"
    MARKET_ANALYSIS = "market_analysis"
    AREA_INFO = "area_info"
    UNKNOWN = "unknown"


class ToolName(StrEnum):
    SEARCH_PROPERTIES = "search_properties"
    GET_MARKET_STATS = "get_market_stats"
    GET_PROPERTY_DETAILS = "get_property_details"
    GET_NEIGHBORHOOD_INFO = "get_neighborhood_info"
    GET_PRICE_TRENDS = "get_price_trends"
    FIND_SIMILAR_PROPERTIES = "find_similar_properties"
    TEXT_SEARCH = "text_search"
    SCHEDULE_TOUR = "schedule_tour"
    CONTACT_AGENT = "contact_agent"
    RESOLVE_PROPERTY_REFERENCE = "resolve_property_reference"
    GET_PROPERTY_CATEGORY = "get_property_category"
