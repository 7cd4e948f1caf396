"""Tests for the response cascade stages and their ordering."""

import pytest

from estate_bot.ai.cascade import ResponseCascade
from estate_bot.ai.data_mapper import DataReferenceMapper
from estate_bot.ai.router import ModelRouter, RouteContext
from estate_bot.ai.tools.executor import ToolExecutor
from estate_bot.core.context import ConversationContext
from estate_bot.core.types import ResponseSource
from estate_bot.errors import NoProvidersConfigured
from estate_bot.storage.models import FaqEntry

from conftest import FakeProvider, text_reply, tool_reply


class ConfidentMapper(DataReferenceMapper):
    """Every matched source reports 0.9."""

    @staticmethod
    def pattern_confidence(question, pattern):
        return 0.9


@pytest.fixture
def make_cascade(faq_repo, cache_repo, data_service):
    def _make(*providers, mapper=None):
        router = ModelRouter({p.name: p for p in providers})
        return ResponseCascade(faq_repo, cache_repo, data_service, router, mapper=mapper, site_name="Test Realty")

    return _make


async def test_faq_exact_match(make_cascade, faq_repo, context):
    faq_id = await faq_repo.add(FaqEntry(question="What are your office hours?", answer="9 to 6", keywords="office hours"))
    provider = FakeProvider()

    result = await make_cascade(provider).resolve("what are your office hours?", context)

    assert result.source == ResponseSource.FAQ
    assert result.confidence == 1.0
    assert result.answer == "9 to 6"
    assert result.data == {"faq_id": faq_id}
    assert provider.calls == []
    entry = await faq_repo.find_exact("What are your office hours?")
    assert entry.usage_count == 1


async def test_faq_keyword_match_scores_below_exact(make_cascade, faq_repo):
    await faq_repo.add(FaqEntry(question="What are your office hours?", answer="9 to 6", keywords="office hours"))

    entry, score = await make_cascade().check_faq("office hours on weekends")

    assert entry is not None
    assert 0.4 <= score < 0.85


async def test_cache_hit(make_cascade, cache_repo, context):
    await cache_repo.store("Do you allow pets?", "Cats only.", "ai", 0.8, 3600)
    provider = FakeProvider()

    result = await make_cascade(provider).resolve("do you allow pets?", context)

    assert result.source == ResponseSource.CACHE
    assert result.answer == "Cats only."
    assert result.confidence == 0.8
    assert provider.calls == []


async def test_data_answer_is_cached(make_cascade, cache_repo, context):
    cascade = make_cascade(FakeProvider(), mapper=ConfidentMapper())

    result = await cascade.resolve("What is the price of MLS 73100001?", context)

    assert result.source == ResponseSource.DATABASE
    assert result.confidence == 0.95
    assert result.tokens_used == 0
    assert result.answer.startswith("The property at 12 Maple Street is listed at $749,000.")

    cached = await cache_repo.lookup("What is the price of MLS 73100001?")
    assert cached.response_type == "database"

    again = await cascade.resolve("What is the price of MLS 73100001?", context)
    assert again.source == ResponseSource.CACHE


async def test_low_mapping_confidence_skips_data_stage(make_cascade, context):
    provider = FakeProvider(replies=[text_reply("It is $749,000.")])

    result = await make_cascade(provider).resolve("What is the price of MLS 73100001?", context)

    assert result.source == ResponseSource.AI


async def test_template_greeting_uses_collected_name(make_cascade, context):
    context.set_collected_field("name", "Ann")
    provider = FakeProvider()

    result = await make_cascade(provider).resolve("Hello!", context)

    assert result.source == ResponseSource.TEMPLATE
    assert result.confidence == 0.95
    assert result.answer.startswith("Hello Ann!")
    assert result.data == {"template": "greeting"}
    assert provider.calls == []


async def test_template_skipped_for_search_request(make_cascade, context):
    provider = FakeProvider(replies=[text_reply("Here are some condos.")])

    result = await make_cascade(provider).resolve("thanks, now show me condos", context)

    assert result.source == ResponseSource.AI
    assert result.answer == "Here are some condos."


async def test_ai_answer(make_cascade, cache_repo, context):
    context.update_search_criteria({"city": "Reading"})
    provider = FakeProvider(replies=[text_reply("Pets depend on the listing.")])

    result = await make_cascade(provider).resolve("Do you allow pets?", context, RouteContext(system="BASE"))

    assert result.source == ResponseSource.AI
    assert result.confidence == 0.8
    assert result.tokens_used == 15
    assert result.provider == "fake"
    assert result.model == "fake-model"
    assert result.routing["provider_used"] == "fake"

    system = provider.calls[0]["system"]
    assert system.startswith("BASE\n\n## Question Analysis")
    assert "Location: Reading" in system

    cached = await cache_repo.lookup("Do you allow pets?", context.cache_key_context())
    assert cached.response == "Pets depend on the listing."
    assert cached.response_type == "ai"


async def test_side_effect_answers_not_cached(make_cascade, cache_repo, data_service, context, lead_repo):
    tour = {"listing_id": "73100001", "name": "Ann Lee", "email": "ann@example.com", "phone": "555-0100"}
    provider = FakeProvider(replies=[tool_reply(("schedule_tour", tour)), text_reply("Your tour is requested.")])
    route_context = RouteContext(executor=ToolExecutor(data_service, context, lead_repo))

    result = await make_cascade(provider).resolve("schedule a tour of 12 Maple Street", context, route_context)

    assert result.answer == "Your tour is requested."
    assert result.data["tool_calls"] == ["schedule_tour"]
    assert result.requires_agent is True
    assert await cache_repo.lookup("schedule a tour of 12 Maple Street", context.cache_key_context()) is None


async def test_router_errors_propagate(make_cascade, context):
    with pytest.raises(NoProvidersConfigured):
        await make_cascade().resolve("Do you allow pets?", context)


async def test_tool_answers_are_not_replayed_from_cache(make_cascade, cache_repo, data_service, conversation_repo, context_repo):
    search = ("search_properties", {"city": "Salem"})
    provider = FakeProvider(
        replies=[tool_reply(search), text_reply("Two homes in Salem."), tool_reply(search), text_reply("Two homes in Salem.")]
    )
    cascade = make_cascade(provider)

    for session in ("visitor-a", "visitor-b"):
        conversation = await conversation_repo.create(session)
        ctx = await ConversationContext.load(conversation.id, context_repo)
        result = await cascade.resolve("show me homes in Salem", ctx, RouteContext(executor=ToolExecutor(data_service, ctx)))

        assert result.source == ResponseSource.AI
        assert result.data["tool_calls"] == ["search_properties"]
        assert ctx.resolve_reference("2") is not None

    assert len(provider.calls) == 4
    assert await cache_repo.lookup("show me homes in Salem") is None


async def test_generic_cache_entry_ignored_when_listings_are_shown(make_cascade, cache_repo, context):
    await cache_repo.store("tell me about the second one", "Which listing do you mean?", "ai", 0.8, 3600)
    context.record_shown_entities([{"listing_id": "73100004"}, {"listing_id": "73100003"}])
    provider = FakeProvider(replies=[text_reply("The second one is 7 Harbor View Lane.")])

    result = await make_cascade(provider).resolve("tell me about the second one", context)

    assert result.source == ResponseSource.AI
    assert result.answer == "The second one is 7 Harbor View Lane."
