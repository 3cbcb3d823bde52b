"""
Tests for the model client: prompt building, timeout and retry handling.

The OpenAI client is replaced by a fake exposing chat.completions.create.
"""

import asyncio
import json
from types import SimpleNamespace

import pytest

from insights.errors import LLMCallError
from insights.llm import InsightClient, RetryPolicy, build_prompt
from insights.models import AnalysisType
from insights.settings import Settings


def completion(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


class FakeOpenAI:
    """Replays scripted outcomes: a string is returned, an exception raised."""

    def __init__(self, *outcomes, delay=0.0):
        self.outcomes = list(outcomes)
        self.delay = delay
        self.requests = []
        self.closed = False
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    async def _create(self, **kwargs):
        self.requests.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.outcomes.pop(0) if self.outcomes else "[]"
        if isinstance(outcome, BaseException):
            raise outcome
        if outcome is None:
            return SimpleNamespace(choices=[])
        return completion(outcome)

    async def close(self):
        self.closed = True


class RecordingSleep:

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def make_client(fake, max_attempts=3, timeout=5.0):
    sleep = RecordingSleep()
    retry = RetryPolicy(max_attempts=max_attempts, sleep=sleep)
    return InsightClient(fake, model="test-model", timeout=timeout, retry=retry), sleep


class TestRetryPolicy:

    def test_delay_doubles_and_caps(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=8.0)
        assert [policy.delay(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 8.0, 8.0]

    def test_from_settings(self):
        settings = Settings(retry_max_attempts=5, retry_base_delay=0.5, retry_max_delay=2.0)
        policy = RetryPolicy.from_settings(settings)
        assert (policy.max_attempts, policy.base_delay, policy.max_delay) == (5, 0.5, 2.0)


class TestComplete:

    @pytest.mark.asyncio
    async def test_returns_text(self):
        fake = FakeOpenAI('[{"customerId": "C1"}]')
        client, sleep = make_client(fake)

        assert await client.complete("prompt") == '[{"customerId": "C1"}]'
        request = fake.requests[0]
        assert request["model"] == "test-model"
        assert request["messages"][-1] == {"role": "user", "content": "prompt"}
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_transient_failure_retried(self):
        fake = FakeOpenAI(asyncio.TimeoutError(), asyncio.TimeoutError(), "[]")
        client, sleep = make_client(fake)

        assert await client.complete("prompt") == "[]"
        assert len(fake.requests) == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_attempts_exhausted(self):
        fake = FakeOpenAI(*[asyncio.TimeoutError()] * 3)
        client, sleep = make_client(fake)

        with pytest.raises(LLMCallError) as exc_info:
            await client.complete("prompt")
        assert exc_info.value.attempts == 3
        assert len(sleep.delays) == 2

    @pytest.mark.asyncio
    async def test_slow_call_times_out(self):
        fake = FakeOpenAI("[]", delay=1.0)
        client, _ = make_client(fake, max_attempts=1)

        with pytest.raises(LLMCallError, match="1 attempts"):
            await client.complete("prompt", timeout=0.01)

    @pytest.mark.asyncio
    async def test_non_retryable_error_propagates(self):
        fake = FakeOpenAI(ValueError("bad request"), "[]")
        client, sleep = make_client(fake)

        with pytest.raises(ValueError, match="bad request"):
            await client.complete("prompt")
        assert len(fake.requests) == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_empty_choices(self):
        client, _ = make_client(FakeOpenAI(None))
        with pytest.raises(LLMCallError, match="no choices"):
            await client.complete("prompt")

    @pytest.mark.asyncio
    async def test_close(self):
        fake = FakeOpenAI()
        client, _ = make_client(fake)
        await client.close()
        assert fake.closed


class TestPrompt:

    def test_sample_size_limits_profiles(self, sample_profiles):
        prompt = build_prompt(AnalysisType.SEGMENTATION, sample_profiles, sample_size=10)
        payload = json.loads(prompt.split("\n", 3)[-1])

        assert "Customers (10):" in prompt
        assert len(payload) == 10
        assert payload[0]["profileId"] == sample_profiles[0].profile_id

    def test_task_per_type(self, profile_factory):
        profiles = [profile_factory("P1", products="Kasko", name="Şule")]
        prompt = build_prompt("products", profiles)

        assert "suggestedProduct" in prompt
        assert "Şule" in prompt

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            build_prompt("upsell", [])

    @pytest.mark.parametrize("analysis_type", ["cross_sell", "churn_prediction"])
    def test_rule_based_types_have_no_prompt(self, analysis_type):
        with pytest.raises(ValueError, match="rule-based"):
            build_prompt(analysis_type, [])


class TestFromSettings:

    def test_without_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("INSIGHTS_OPENAI_API_KEY", raising=False)
        settings = Settings(_env_file=None)

        assert not settings.llm_enabled
        assert InsightClient.from_settings(settings) is None

    def test_with_key(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        settings = Settings(_env_file=None, llm_timeout_seconds=12, openai_model="m")
        client = InsightClient.from_settings(settings)

        assert client is not None
        assert client.model == "m"
        assert client.timeout == 12
