import pytest

from kazilens.coaches import create_coach
from kazilens.config import Config
from kazilens.errors import ProviderError, RateLimited
from kazilens.models import ResumeAnalysis
from kazilens.providers import gemini

ANALYSIS = ResumeAnalysis(score=74, parsed_name="Amina", parsed_role="Data Analyst")


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(Config, "RETRY_BASE_DELAY_MS", 0)


class TestGeminiCoach:
    def test_greeting(self):
        coach = create_coach(ANALYSIS)
        history = coach.get_history()
        assert len(history) == 1
        assert history[0]["role"] == "model"
        assert history[0]["text"].startswith("Hi Amina!")
        assert create_coach().get_history()[0]["text"].startswith("Hi there!")

    def test_unknown_coach_type(self):
        with pytest.raises(ValueError):
            create_coach(coach_type="local")

    async def test_chat_sends_history_without_greeting(self, monkeypatch):
        seen = []

        async def fake(contents, **kwargs):
            seen.append((contents, kwargs))
            return " Negotiate from market data. "

        monkeypatch.setattr(gemini, "generate_content", fake)
        coach = create_coach(ANALYSIS)

        reply = await coach.chat("How do I negotiate salary?")

        assert reply == "Negotiate from market data."
        contents, kwargs = seen[0]
        assert contents == [{"role": "user", "parts": [{"text": "How do I negotiate salary?"}]}]
        assert "Data Analyst" in kwargs["system_instruction"]
        assert [m["role"] for m in coach.get_history()] == ["model", "user", "model"]

    async def test_empty_reply(self, monkeypatch):
        async def fake(contents, **kwargs):
            return "   "

        monkeypatch.setattr(gemini, "generate_content", fake)
        assert await create_coach().chat("hello") == "I'm sorry, I couldn't process that."

    async def test_quota_message(self, monkeypatch):
        async def fake(contents, **kwargs):
            raise RateLimited("429")

        monkeypatch.setattr(gemini, "generate_content", fake)
        reply = await create_coach().chat("hello")
        assert reply.startswith("Error: Rate limit exceeded")

    async def test_provider_error_message(self, monkeypatch):
        async def fake(contents, **kwargs):
            raise ProviderError("HTTP 500")

        monkeypatch.setattr(gemini, "generate_content", fake)
        coach = create_coach()
        assert await coach.chat("hello") == "Error connecting to coach. Please try again."
        assert coach.get_history()[-1]["role"] == "model"

    async def test_failed_turns_not_sent_back(self, monkeypatch):
        seen = []
        replies = [ProviderError("HTTP 500"), "Lead with the migration project."]

        async def fake(contents, **kwargs):
            seen.append(contents)
            reply = replies.pop(0)
            if isinstance(reply, Exception):
                raise reply
            return reply

        monkeypatch.setattr(gemini, "generate_content", fake)
        coach = create_coach(ANALYSIS)

        assert await coach.chat("Which project should I open with?") == "Error connecting to coach. Please try again."
        assert await coach.chat("Which project should I open with? Trying again.") == "Lead with the migration project."

        assert seen[1] == [{"role": "user", "parts": [{"text": "Which project should I open with? Trying again."}]}]
        history = coach.get_history()
        assert len(history) == 5
        assert history[2]["text"] == "Error connecting to coach. Please try again."

    async def test_history_after_recovery_keeps_good_turns(self, monkeypatch):
        seen = []
        replies = ["Quantify your impact.", RateLimited("429"), RateLimited("429"), RateLimited("429"),
                   RateLimited("429"), "Sure."]

        async def fake(contents, **kwargs):
            seen.append(contents)
            reply = replies.pop(0)
            if isinstance(reply, Exception):
                raise reply
            return reply

        monkeypatch.setattr(gemini, "generate_content", fake)
        coach = create_coach()
        await coach.chat("Tips?")
        assert (await coach.chat("More?")).startswith("Error: Rate limit exceeded")
        await coach.chat("Thanks")

        assert [c["role"] for c in seen[-1]] == ["user", "model", "user"]
        assert [c["parts"][0]["text"] for c in seen[-1]] == ["Tips?", "Quantify your impact.", "Thanks"]
