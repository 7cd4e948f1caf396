"""Tests for the tool executor handlers against the sample listings."""

import pytest

from estate_bot.ai.tools.executor import ToolExecutor, is_valid_email, split_name
from estate_bot.core.context import ConversationContext

TOUR = {
    "listing_id": "73100001",
    "name": "Ann Lee",
    "email": "ann@example.com",
    "phone": "781-555-0199",
    "preferred_date": "2026-10-24",
    "preferred_time": "afternoon",
}


@pytest.fixture
def executor(data_service, context, lead_repo, conversation_repo):
    return ToolExecutor(data_service, context, lead_repo, conversation_repo, site_url="https://homes.example")


def test_email_validation():
    assert is_valid_email("ann@example.com")
    assert not is_valid_email("ann@example")
    assert not is_valid_email("not an email")


def test_split_name():
    assert split_name("Ann Marie Lee") == ("Ann", "Marie Lee")
    assert split_name("Cher") == ("Cher", "")


async def test_unknown_tool(executor):
    result = await executor.execute("launch_rocket", {})
    assert not result.success
    assert result.error_code == "unknown_tool"


async def test_non_dict_arguments_treated_as_empty(executor):
    result = await executor.execute("text_search", None)
    assert not result.success
    assert result.error == "query is required"


class TestSearch:
    async def test_search_records_shown_and_persists_criteria(self, executor, context, context_repo):
        result = await executor.execute("search_properties", {"city": "Reading"})

        assert result.success
        assert result.data["count"] == 2
        ids = [p["listing_id"] for p in result.data["properties"]]
        assert ids == ["73100002", "73100001"]
        assert result.data["properties"][0]["reference_number"] == 1
        assert result.data["properties"][0]["property_url"] == "https://homes.example/property/73100002/"

        assert context.resolve_reference("1") == "73100002"
        reloaded = await ConversationContext.load(context.conversation_id, context_repo)
        assert reloaded.search_criteria == {"city": "Reading"}
        assert [e.entity_id for e in reloaded.shown_entities] == ["73100002", "73100001"]

    async def test_follow_up_search_merges_criteria(self, executor, context):
        await executor.execute("search_properties", {"city": "Reading"})
        result = await executor.execute("search_properties", {"max_price": 700000})

        assert [p["listing_id"] for p in result.data["properties"]] == ["73100002"]
        assert context.search_criteria == {"city": "Reading", "max_price": 700000}

    async def test_zero_results_still_saves_criteria(self, executor, context_repo, context):
        result = await executor.execute("search_properties", {"city": "Boston"})

        assert result.success
        assert result.data["count"] == 0
        assert result.data["message"] == "No properties found matching your criteria."
        reloaded = await ConversationContext.load(context.conversation_id, context_repo)
        assert reloaded.search_criteria == {"city": "Boston"}

    async def test_limit_capped(self, executor):
        result = await executor.execute("search_properties", {"limit": 50})
        assert result.data["criteria_used"]["limit"] == 10
        # the pending condo is not active
        assert result.data["count"] == 5

    async def test_text_search(self, executor):
        result = await executor.execute("text_search", {"query": "harbor"})
        assert [p["listing_id"] for p in result.data["properties"]] == ["73100003"]


class TestPropertyDetails:
    async def test_details_set_active_entity(self, executor, context):
        result = await executor.execute("get_property_details", {"listing_id": "73100001"})

        assert result.success
        prop = result.data["property"]
        assert prop["price"] == "$749,000"
        assert prop["listing_agent"]["name"] == "Dana Whitfield"
        assert "primary_photo" not in prop
        assert "hvac" in result.data["data_categories_available"]
        assert context.active_entity_id == "73100001"

    async def test_details_missing_listing(self, executor):
        result = await executor.execute("get_property_details", {"listing_id": "999"})
        assert not result.success
        assert result.error == "Property not found: 999"

    async def test_resolve_reference_after_search(self, executor, context):
        await executor.execute("search_properties", {"city": "Reading"})
        result = await executor.execute("resolve_property_reference", {"reference": "the second one"})

        assert result.success
        assert result.data["property"]["listing_id"] == "73100001"
        assert context.active_entity_id == "73100001"

    async def test_resolve_reference_unresolved(self, executor):
        result = await executor.execute("resolve_property_reference", {"reference": "number 4"})
        assert not result.success
        assert result.error_code == "reference_unresolved"

    async def test_category_requires_active_entity(self, executor):
        result = await executor.execute("get_property_category", {"category": "hvac"})
        assert not result.success
        assert "No active property" in result.error

    async def test_category_of_active_entity(self, executor):
        await executor.execute("get_property_details", {"listing_id": "73100001"})

        hvac = await executor.execute("get_property_category", {"category": "hvac"})
        assert hvac.data["data"] == {"cooling": "Central Air", "fuel_type": "Natural Gas"}

        rooms = await executor.execute("get_property_category", {"category": "rooms"})
        assert len(rooms.data["data"]) == 3

    async def test_invalid_category(self, executor):
        result = await executor.execute("get_property_category", {"category": "pets"})
        assert not result.success

    async def test_similar_properties(self, executor):
        result = await executor.execute("find_similar_properties", {"listing_id": "73100001", "count": 10})

        assert result.success
        assert result.data["subject_property"]["listing_id"] == "73100001"
        assert [p["listing_id"] for p in result.data["similar_properties"]] == ["73100002", "73100005"]


class TestLeads:
    async def test_schedule_tour_requires_fields(self, executor):
        result = await executor.execute("schedule_tour", {**TOUR, "phone": ""})
        assert not result.success
        assert result.error == "phone is required to schedule a tour"

    async def test_schedule_tour_rejects_bad_email(self, executor):
        result = await executor.execute("schedule_tour", {**TOUR, "email": "ann-at-example"})
        assert not result.success
        assert result.error == "Please provide a valid email address"

    async def test_schedule_tour_saves_lead_and_contact(
        self, executor, context, lead_repo, conversation_repo
    ):
        result = await executor.execute("schedule_tour", TOUR)

        assert result.success
        assert result.data["property_address"].startswith("12 Maple Street")
        assert result.data["message"].endswith("for 2026-10-24 (afternoon).")

        leads = await lead_repo.list_for_conversation(context.conversation_id)
        assert len(leads) == 1
        assert (leads[0].form_type, leads[0].first_name, leads[0].last_name) == ("tour", "Ann", "Lee")
        assert "Preferred Date: 2026-10-24" in leads[0].message

        assert context.collected_info["email"] == "ann@example.com"
        record = await conversation_repo.get(context.conversation_id)
        assert record.user_email == "ann@example.com"

    async def test_schedule_tour_unknown_listing(self, executor, lead_repo, context):
        result = await executor.execute("schedule_tour", {**TOUR, "listing_id": "999"})
        assert not result.success
        assert await lead_repo.list_for_conversation(context.conversation_id) == []

    async def test_contact_agent(self, executor, lead_repo, context):
        result = await executor.execute(
            "contact_agent",
            {
                "name": "Ann Lee",
                "email": "ann@example.com",
                "message": "Is the seller flexible?",
                "inquiry_type": "buying",
            },
        )

        assert result.success
        assert result.data["message"] == "Message sent successfully! An agent will respond to Ann Lee at ann@example.com soon."
        leads = await lead_repo.list_for_conversation(context.conversation_id)
        assert leads[0].message == "[Buying Inquiry]\n\nIs the seller flexible?"
        assert leads[0].listing_id is None

    async def test_contact_agent_unknown_inquiry_type_is_general(self, executor, lead_repo, context):
        await executor.execute(
            "contact_agent",
            {"name": "Ann", "email": "ann@example.com", "message": "Hello", "inquiry_type": "gossip"},
        )
        leads = await lead_repo.list_for_conversation(context.conversation_id)
        assert leads[0].inquiry_type == "general"
        assert leads[0].message == "Hello"


class TestMarket:
    async def test_average_price(self, executor):
        result = await executor.execute("get_market_stats", {"stat_type": "average_price", "city": "Salem"})

        assert result.data["formatted_price"] == "$572,000"
        assert result.data["description"] == "The average listing price is $572,000"
        assert result.data["filters"] == {"city": "Salem"}

    async def test_total_active(self, executor):
        result = await executor.execute("get_market_stats", {"stat_type": "total_active"})
        assert result.data["total_listings"] == 5

    async def test_unknown_stat_type(self, executor):
        result = await executor.execute("get_market_stats", {"stat_type": "vibes"})
        assert not result.success

    async def test_neighborhood_info(self, executor):
        result = await executor.execute("get_neighborhood_info", {"neighborhood": "Reading"})
        assert result.data["total_listings"] == 2
        assert result.data["price_range"] == "$689,000 - $749,000"

    async def test_neighborhood_without_listings(self, executor):
        result = await executor.execute("get_neighborhood_info", {"neighborhood": "Atlantis"})
        assert result.success
        assert result.data["message"] == "No active listings found in Atlantis."

    async def test_price_trends(self, executor):
        result = await executor.execute("get_price_trends", {"city": "Reading", "timeframe": "90d"})

        assert result.data["trends"] == [
            {"month": "2026-09", "avg_price": "$749,000", "avg_change": "-3.4%", "changes": 1}
        ]

    async def test_price_trends_outside_window(self, executor):
        result = await executor.execute("get_price_trends", {"city": "Salem", "timeframe": "90d"})
        assert result.data["trends"] == []
