"""Tests for the SQLite repositories: cache, FAQ, usage and conversations."""

from estate_bot.core.types import Role
from estate_bot.storage.models import FaqEntry, MessageRecord


class TestCacheRepository:
    async def test_prefers_context_specific_entry(self, cache_repo):
        await cache_repo.store("Homes under 700k?", "generic answer", "ai", 0.8, 3600, now=1000)
        await cache_repo.store(
            "Homes under 700k?", "reading answer", "ai", 0.8, 3600,
            context={"criteria": {"city": "Reading"}}, now=1000,
        )

        hit = await cache_repo.lookup("homes under 700K? ", {"criteria": {"city": "Reading"}}, now=1001)
        assert hit is not None
        assert hit.response == "reading answer"

        other = await cache_repo.lookup("Homes under 700k?", {"criteria": {"city": "Salem"}}, now=1001)
        assert other is not None
        assert other.response == "generic answer"

    async def test_generic_entry_can_be_excluded(self, cache_repo):
        await cache_repo.store("the second one", "generic answer", "ai", 0.8, 3600, now=1000)
        shown = {"shown": ["73100004", "73100003"]}

        assert await cache_repo.lookup("the second one", shown, now=1001, allow_generic=False) is None
        assert (await cache_repo.lookup("the second one", shown, now=1001)).response == "generic answer"

    async def test_expired_entry_ignored(self, cache_repo):
        await cache_repo.store("office hours", "9 to 6", "template", 0.9, 10, now=1000)
        assert await cache_repo.lookup("office hours", now=1005) is not None
        assert await cache_repo.lookup("office hours", now=1011) is None

    async def test_hit_count_updated(self, cache_repo):
        await cache_repo.store("q", "a", "database", 0.9, 3600, now=1000)
        await cache_repo.lookup("q", now=1001)
        hit = await cache_repo.lookup("q", now=1002)
        assert hit.hit_count == 2
        assert hit.last_accessed == 1002

    async def test_purge_expired(self, cache_repo):
        await cache_repo.store("q", "a", "ai", 0.8, 10, now=1000)
        await cache_repo.store("q2", "a", "ai", 0.8, 1000, now=1000)
        assert await cache_repo.purge_expired(now=1500) == 1


class TestFaqRepository:
    async def test_find_exact_is_case_insensitive(self, faq_repo):
        await faq_repo.add(FaqEntry(question="What are your office hours?", answer="9 to 6", keywords="office hours"))
        entry = await faq_repo.find_exact("  what are your OFFICE hours?")
        assert entry is not None
        assert entry.answer == "9 to 6"

    async def test_inactive_entries_hidden(self, faq_repo):
        await faq_repo.add(FaqEntry(question="Old question", answer="x", is_active=False))
        assert await faq_repo.find_exact("Old question") is None
        assert await faq_repo.count() == 0

    async def test_search_keywords(self, faq_repo):
        await faq_repo.add(FaqEntry(question="How do I schedule a showing?", answer="Ask me", keywords="schedule showing tour"))
        await faq_repo.add(FaqEntry(question="What are your office hours?", answer="9 to 6", keywords="office hours"))

        results = await faq_repo.search_keywords(["tour", "weekend"])
        assert [r.answer for r in results] == ["Ask me"]
        assert await faq_repo.search_keywords([]) == []

    async def test_search_keywords_survives_fts_syntax(self, faq_repo):
        await faq_repo.add(FaqEntry(question="Pets allowed?", answer="Depends", keywords="pets"))
        assert await faq_repo.search_keywords(['pets"', "AND"]) != []

    async def test_increment_usage(self, faq_repo):
        faq_id = await faq_repo.add(FaqEntry(question="q", answer="a"))
        await faq_repo.increment_usage(faq_id)
        entry = await faq_repo.find_exact("q")
        assert entry.usage_count == 1


class TestUsageRepository:
    async def test_record_accumulates(self, usage_repo):
        await usage_repo.record("openai", 100, 20, 0.01, day="2026-10-17")
        await usage_repo.record("openai", 50, 10, 0.005, day="2026-10-17")
        usage = await usage_repo.get("openai", day="2026-10-17")
        assert usage.request_count == 2
        assert usage.prompt_tokens == 150
        assert usage.completion_tokens == 30

    async def test_unknown_provider_is_zero(self, usage_repo):
        usage = await usage_repo.get("gemini", day="2026-10-17")
        assert usage.request_count == 0


class TestConversationRepository:
    async def test_history_is_oldest_first_and_limited(self, conversation_repo, conversation):
        for i in range(5):
            role = Role.USER if i % 2 == 0 else Role.ASSISTANT
            await conversation_repo.save_message(MessageRecord(conversation.id, str(role), f"m{i}"))
        history = await conversation_repo.get_history(conversation.id, limit=3)
        assert [m.content for m in history] == ["m2", "m3", "m4"]

    async def test_record_response_accumulates_tokens(self, conversation_repo, conversation):
        await conversation_repo.record_response(conversation.id, "ai", 120)
        await conversation_repo.record_response(conversation.id, "faq", 0)
        record = await conversation_repo.get(conversation.id)
        assert record.total_tokens == 120
        assert record.last_response_source == "faq"

    async def test_find_returning_visitor(self, conversation_repo):
        first = await conversation_repo.create("s1")
        await conversation_repo.update_contact(first.id, {"name": "Ann", "email": "Ann@Example.com"})
        second = await conversation_repo.create("s2")

        found = await conversation_repo.find_returning_visitor(email="ann@example.com", exclude_id=second.id)
        assert found is not None
        assert found.id == first.id
        assert await conversation_repo.find_returning_visitor() is None

    async def test_update_contact_keeps_first_value(self, conversation_repo, conversation):
        await conversation_repo.update_contact(conversation.id, {"name": "Ann"})
        await conversation_repo.update_contact(conversation.id, {"name": "Bob", "phone": "555"})
        record = await conversation_repo.get(conversation.id)
        assert record.user_name == "Ann"
        assert record.user_phone == "555"
