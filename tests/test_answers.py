"""Tests for intent analysis, data mapping, data answers and templates."""

from datetime import datetime

import pytest

from estate_bot.ai.answers import DataAnswerer, can_answer_with_data
from estate_bot.ai.data_mapper import DataMapping, DataReferenceMapper, SourceMatch
from estate_bot.ai.intent import analyze_intent, extract_entities
from estate_bot.ai.scoring import FaqScorer, extract_keywords
from estate_bot.ai.templates import fill_template, match_template
from estate_bot.core.types import IntentType
from estate_bot.storage.models import FaqEntry

CITIES = ["Reading", "Salem", "Wakefield"]


@pytest.mark.parametrize(
    "question, intent",
    [
        ("How much is MLS 73100001?", IntentType.PRICE_INQUIRY),
        ("3 bedroom homes in Salem", IntentType.PROPERTY_FEATURES),
        ("What schools are near 12 Maple?", IntentType.LOCATION_INQUIRY),
        ("Which school district is this?", IntentType.SCHOOL_INFO),
        ("Can I schedule a showing?", IntentType.SCHEDULING),
        ("Do you allow pets?", IntentType.UNKNOWN),
    ],
)
def test_intent_first_rule_wins(question, intent):
    assert analyze_intent(question).type == intent


def test_scheduling_requires_agent():
    analysis = analyze_intent("I want to schedule a tour")
    assert analysis.requires_agent
    assert analysis.urgency == "high"


def test_extract_entities():
    entities = extract_entities("3 bed condo in salem under $650k, listing #73100003", CITIES)
    assert entities == {
        "listing_id": "73100003",
        "price": 650000,
        "bedrooms": 3,
        "city": "Salem",
        "property_type": "condo",
    }


def test_mapper_matches_sources_and_hints():
    mapping = DataReferenceMapper().map_question("What is the average price in Salem?")

    assert "market_stats" in mapping.matched_sources
    assert mapping.extraction_hints["possible_locations"] == ["What", "Salem"]
    assert [a.key for a in mapping.suggested_queries] == ["get_area_market_stats"]
    context = DataReferenceMapper.generate_ai_context(mapping)
    assert "market_stats (confidence:" in context


def test_can_answer_with_data():
    intent = analyze_intent("How much is MLS 73100001?")
    strong = DataMapping({"property_details": SourceMatch("property_details", 0.9, (), "")})
    weak = DataMapping({"property_details": SourceMatch("property_details", 0.3, (), "")})

    assert can_answer_with_data(intent, strong, 0.65)
    assert not can_answer_with_data(intent, weak, 0.65)
    assert not can_answer_with_data(analyze_intent("Do you allow pets?"), strong, 0.65)


class TestDataAnswerer:
    async def test_city_price(self, data_service):
        answer = await DataAnswerer(data_service).generate_price({"city": "Salem"})
        assert answer.confidence == 0.85
        assert answer.answer == "In Salem, the average home price is $572,000, with prices ranging from $529,000 to $615,000."

    async def test_unknown_listing_price(self, data_service):
        assert await DataAnswerer(data_service).generate_price({"listing_id": "999"}) is None

    async def test_features_no_match(self, data_service):
        answer = await DataAnswerer(data_service).generate_features({"bedrooms": 9})
        assert (answer.answer, answer.confidence) == ("No properties found matching your criteria.", 0.80)

    async def test_availability(self, data_service):
        answer = await DataAnswerer(data_service).generate_availability({"city": "Wakefield"})
        assert answer.answer.startswith("There are currently 1 active listings in Wakefield.")

    async def test_schools(self, data_service):
        answer = await DataAnswerer(data_service).generate_schools({"listing_id": "73100002"})
        assert answer.confidence == 0.92
        assert "Birch Meadow Elementary (Elementary) - Rating: 9" in answer.answer

    async def test_schools_unavailable(self, data_service):
        answer = await DataAnswerer(data_service).generate_schools({"listing_id": "73100004"})
        assert answer.confidence == 0.70

    async def test_gather_relevant_data(self, data_service):
        data = await DataAnswerer(data_service).gather_relevant_data({"listing_id": "73100003", "city": "Salem"})
        assert data["property"]["street_address"] == "7 Harbor View Lane"
        assert data["market_stats"][0]["total_listings"] == 2
        assert data["neighborhood"]["total_listings"] == 2


def test_templates():
    assert match_template("Good morning!").key == "greeting"
    assert match_template("thank you so much").key == "thanks"
    assert match_template("What is the HOA fee?") is None

    text = fill_template("{user_name} on {current_date}", now=datetime(2026, 10, 17))
    assert text == "there on October 17, 2026"


def test_extract_keywords_drops_stop_words():
    assert extract_keywords("What are the office hours for the office?") == ["what", "office", "hours"]


def test_faq_scorer_keyword_hit_bonus():
    entry = FaqEntry(question="What are your office hours?", answer="", keywords="office hours")
    scorer = FaqScorer()
    assert scorer.score("what are your office hours?", entry) == 1.0
    assert scorer.score("parking downtown", entry) == 0.0
