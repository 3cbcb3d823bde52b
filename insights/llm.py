"""
Model client for the analysis types without a rule engine.

The client is constructed once at startup and injected into the service;
nothing here holds module-level state.

    client = InsightClient.from_settings(settings)
    text = await client.complete(build_prompt(AnalysisType.SEGMENTATION, profiles))
    await client.close()
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence

import openai
from openai import AsyncOpenAI

from .errors import LLMCallError
from .models import AnalysisType, CustomerProfile
from .profiles import split_hashtags, split_products
from .settings import Settings

logger = logging.getLogger("insights.llm")

# Transient failures worth another attempt
RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
    asyncio.TimeoutError,
)

SYSTEM_PROMPT = (
    "You are an analyst for an insurance agency CRM. "
    "Answer only with a JSON array, no prose."
)

SEGMENT_SYSTEM_PROMPT = (
    "You are an analyst for an insurance agency CRM. "
    "Answer only with one JSON object, no prose."
)

SEGMENT_FILTER_KEYS = (
    "hasBranch, hasBranch2 (products the customer owns), "
    "notHasBranch, notHasBranch2 (products the customer does not own), "
    "hashtag or hashtags (tags that must all be present), city, "
    "customerType (bireysel or kurumsal), policyCountMin, policyCountMax"
)

_TASKS = {
    AnalysisType.SEGMENTATION: (
        "Group these customers into segments. For each customer return "
        "customerId, customerName, currentProduct, probability (0-100, fit "
        "to the segment), reason (segment name and why), city, hashtags."
    ),
    AnalysisType.PRODUCTS: (
        "Recommend the single best new insurance product for each customer. "
        "Return customerId, customerName, currentProduct, suggestedProduct, "
        "probability (0-100), reason, city, hashtags."
    ),
}


@dataclass
class RetryPolicy:
    """
    Exponential backoff: base_delay, 2 * base_delay, ... capped at max_delay.

    ``sleep`` is injectable so tests do not wait.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 8.0
    retry_on: tuple[type[BaseException], ...] = RETRYABLE_ERRORS
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep

    def delay(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-based)."""
        return min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))

    async def run(self, call: Callable[[], Awaitable[Any]]) -> Any:
        """
        Await ``call()`` until it succeeds or attempts run out.

        Raises:
            LLMCallError: last retryable failure, after max_attempts
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await call()
            except self.retry_on as e:
                if attempt >= self.max_attempts:
                    raise LLMCallError(
                        f"model call failed after {attempt} attempts: {e!r}",
                        attempts=attempt,
                    ) from e
                wait = self.delay(attempt)
                logger.warning(
                    "model call attempt %d/%d failed (%s), retrying in %.1fs",
                    attempt, self.max_attempts, type(e).__name__, wait,
                )
                await self.sleep(wait)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        )


def profile_summary(profile: CustomerProfile) -> dict:
    """Compact per-profile payload for a prompt."""
    return {
        "customerId": profile.customer_id,
        "profileId": profile.profile_id,
        "customerName": profile.name,
        "customerType": profile.customer_type,
        "city": profile.city,
        "products": profile.products,
        "policyCount": profile.policy_count,
        "hashtags": profile.hashtags,
    }


def build_prompt(
    analysis_type: AnalysisType | str,
    profiles: Sequence[CustomerProfile],
    sample_size: int = 200,
) -> str:
    """
    Task instructions plus at most ``sample_size`` profiles as JSON.

    Raises:
        ValueError: unknown type, or a rule-based type (no model prompt)
    """
    analysis_type = AnalysisType.parse(analysis_type)
    if analysis_type not in _TASKS:
        raise ValueError(f"{analysis_type.value} is rule-based and has no model prompt")
    sample = [profile_summary(p) for p in list(profiles)[:sample_size]]
    return (
        f"{_TASKS[analysis_type]}\n\n"
        f"Customers ({len(sample)}):\n"
        f"{json.dumps(sample, ensure_ascii=False)}"
    )


def _distinct(values, limit: int) -> list[str]:
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
            if len(seen) == limit:
                break
    return seen


def build_segment_prompt(
    criteria: str,
    profiles: Sequence[CustomerProfile],
    sample_size: int = 30,
) -> str:
    """
    Ask for a segment definition matching free-text criteria.

    The prompt lists the filter keys and the products, cities and hashtags
    actually present so the model proposes filters that can match.
    """
    profiles = list(profiles)
    sample = [profile_summary(p) for p in profiles[:sample_size]]
    products = _distinct((item for p in profiles for item in split_products(p.products)), 40)
    cities = _distinct((p.city for p in profiles), 20)
    hashtags = _distinct((t for p in profiles for t in split_hashtags(p.hashtags)), 40)
    return (
        f"Define a customer segment for these criteria: {criteria}\n\n"
        f"Return an object with title, insight (traits and marketing advice), "
        f"confidence (0-100) and filters. Filter keys: {SEGMENT_FILTER_KEYS}. "
        f"Only include filters the criteria call for; hashtags start with '#'.\n\n"
        f"Products: {', '.join(products)}\n"
        f"Cities: {', '.join(cities)}\n"
        f"Hashtags: {', '.join(hashtags)}\n\n"
        f"Customers ({len(sample)} of {len(profiles)}):\n"
        f"{json.dumps(sample, ensure_ascii=False)}"
    )


class InsightClient:
    """AsyncOpenAI chat wrapper with a per-call timeout and retry policy."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "gpt-4o-mini",
        timeout: float = 60.0,
        retry: Optional[RetryPolicy] = None,
        temperature: float = 0.3,
        max_tokens: int = 4096,
    ) -> None:
        self._client = client
        self.model = model
        self.timeout = timeout
        self.retry = retry or RetryPolicy()
        self.temperature = temperature
        self.max_tokens = max_tokens

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["InsightClient"]:
        """Build the client, or None when no API key is configured."""
        if not settings.llm_enabled:
            return None
        client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
        )
        return cls(
            client,
            model=settings.openai_model,
            timeout=settings.llm_timeout_seconds,
            retry=RetryPolicy.from_settings(settings),
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )

    async def _complete_once(self, prompt: str, timeout: float, system: str) -> str:
        logger.debug("model call: model=%s, prompt=%d chars", self.model, len(prompt))
        resp = await asyncio.wait_for(
            self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            ),
            timeout=timeout,
        )
        if not resp.choices:
            raise LLMCallError(f"model response has no choices (model={self.model})")
        return resp.choices[0].message.content or ""

    async def complete(
        self,
        prompt: str,
        timeout: Optional[float] = None,
        system: str = SYSTEM_PROMPT,
    ) -> str:
        """
        Send one prompt and return the raw response text.

        Raises:
            LLMCallError: timeout or transport failure after all retries
        """
        limit = self.timeout if timeout is None else timeout
        return await self.retry.run(lambda: self._complete_once(prompt, limit, system))

    async def close(self) -> None:
        await self._client.close()
