"""Tests for ConversationContext: criteria merging, reference resolution, write-once contact info."""

import pytest

from estate_bot.core.context import ConversationContext

SHOWN = [
    {"listing_id": "A1", "address": "12 Maple Street, Reading, MA 01867", "street": "12 Maple Street", "price": "$749,000"},
    {"listing_id": "B2", "address": "48 Oak Ridge Road, Reading, MA 01867", "street": "48 Oak Ridge Road", "price": "$689,000"},
    {"listing_id": "C3", "address": "7 Harbor View Lane, Salem, MA 01970", "street": "7 Harbor View Lane", "price": "$529,000"},
    {"listing_id": "D4", "address": "3 Lakeside Drive, Wakefield, MA 01880", "street": "3 Lakeside Drive", "price": "$899,000"},
]


@pytest.fixture
def ctx():
    context = ConversationContext(1)
    context.record_shown_entities(SHOWN)
    return context


def test_update_search_criteria_merges():
    ctx = ConversationContext(1)
    ctx.update_search_criteria({"city": "Reading", "max_price": 800000})
    merged = ctx.update_search_criteria({"min_bedrooms": 3, "city": "", "color": "blue"})

    assert merged == {"city": "Reading", "max_price": 800000, "min_bedrooms": 3}
    assert ctx.search_criteria == merged


def test_update_search_criteria_replaces_values():
    ctx = ConversationContext(1)
    ctx.update_search_criteria({"city": "Reading"})
    assert ctx.update_search_criteria({"city": "Salem"})["city"] == "Salem"


def test_record_shown_entities_reindexes(ctx):
    ctx.record_shown_entities(SHOWN[2:])
    assert [(e.index, e.entity_id) for e in ctx.shown_entities] == [(1, "C3"), (2, "D4")]


@pytest.mark.parametrize(
    "reference, expected",
    [
        ("2", "B2"),
        ("#3", "C3"),
        ("number 1", "A1"),
        ("option 4", "D4"),
        ("the second one", "B2"),
        ("third", "C3"),
        ("3rd", "C3"),
        ("the 2nd one", "B2"),
        ("last", "D4"),
        ("cheapest", "C3"),
        ("most expensive", "D4"),
        ("the cheapest one", "C3"),
        ("the most expensive property", "D4"),
        ("lowest price home", "C3"),
        ("maple", "A1"),
        ("Oak Ridge", "B2"),
        ("harbour view", "C3"),
    ],
)
def test_resolve_reference(ctx, reference, expected):
    assert ctx.resolve_reference(reference) == expected


@pytest.mark.parametrize("reference", ["9", "fifth", "zzzz", ""])
def test_resolve_reference_unresolved(ctx, reference):
    assert ctx.resolve_reference(reference) is None


def test_resolve_reference_without_shown_entities():
    assert ConversationContext(1).resolve_reference("1") is None


def test_collected_info_is_write_once():
    ctx = ConversationContext(1)
    assert ctx.set_collected_field("name", "Ann Lee") is True
    assert ctx.set_collected_field("name", "Bob") is False
    assert ctx.merge_collected_info({"name": "Carl", "email": "ann@example.com", "phone": ""}) == ["email"]
    assert ctx.collected_info == {"name": "Ann Lee", "email": "ann@example.com"}


def test_unknown_contact_field_ignored():
    ctx = ConversationContext(1)
    assert ctx.set_collected_field("ssn", "123") is False
    assert ctx.collected_info == {}


def test_has_complete_contact_info():
    ctx = ConversationContext(1)
    ctx.set_collected_field("name", "Ann")
    assert not ctx.has_complete_contact_info()
    ctx.set_collected_field("phone", "555-0100")
    assert ctx.has_complete_contact_info()


def test_set_active_entity_replaces(ctx):
    ctx.set_active_entity("A1", {"listing_id": "A1"})
    ctx.set_active_entity("B2", {"listing_id": "B2", "list_price": 1})
    assert ctx.active_entity_id == "B2"
    assert ctx.active_entity == {"listing_id": "B2", "list_price": 1}


def test_cache_key_context():
    ctx = ConversationContext(1)
    assert ctx.cache_key_context() == {}
    ctx.update_search_criteria({"city": "Reading"})
    ctx.set_active_entity("A1", {})
    assert ctx.cache_key_context() == {"criteria": {"city": "Reading"}, "active": "A1"}
    ctx.record_shown_entities(SHOWN[:2])
    assert ctx.cache_key_context()["shown"] == ["A1", "B2"]


def test_ai_context_string_sections(ctx):
    ctx.set_collected_field("name", "Ann")
    ctx.update_search_criteria({"city": "Reading", "min_bedrooms": 3})
    text = ctx.build_ai_context_string()

    assert "Name: Ann" in text
    assert "Location: Reading" in text
    assert "Bedrooms: 3+" in text
    assert "#2: 48 Oak Ridge Road, Reading, MA 01867 - $689,000 (ID: B2)" in text


async def test_save_and_reload(context, context_repo):
    context.update_search_criteria({"city": "Salem"})
    context.record_shown_entities(SHOWN[:2])
    context.set_collected_field("email", "ann@example.com")

    assert await context.save() is True
    assert await context.save() is False

    reloaded = await ConversationContext.load(context.conversation_id, context_repo)
    assert reloaded.search_criteria == {"city": "Salem"}
    assert reloaded.resolve_reference("2") == "B2"
    assert reloaded.collected_info == {"email": "ann@example.com"}


async def test_unsaved_changes_are_not_durable(context, context_repo):
    context.update_search_criteria({"city": "Salem"})
    reloaded = await ConversationContext.load(context.conversation_id, context_repo)
    assert reloaded.search_criteria == {}
