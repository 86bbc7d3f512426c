"""
Model provider abstraction.

Every stage talks to a provider through the same "prompt in, text out"
contract. Two backends are supported, selected by which API key is
configured: OpenAI first, Anthropic second.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, Protocol, Tuple

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from policyscan.config import Settings, settings
from policyscan.exceptions import ConfigurationError
from policyscan.services.rate_limiter import SlidingWindowRateLimiter
from policyscan.services.retry import call_with_retry
from policyscan.utils.logging_config import StructuredLogger, metrics

logger = StructuredLogger(__name__)

SYSTEM_PROMPT = (
    "You are a content policy compliance analyst for video creators. "
    "You assess transcripts and descriptions for platform policy risk. "
    "Return ONLY valid JSON (no markdown, no commentary) matching the "
    "schema given in the user message."
)


class LLMProvider(Protocol):
    name: str

    async def generate(self, prompt: str) -> str:
        ...


class OpenAIProvider:
    """
    Wrapper around the async OpenAI client.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        key = api_key or settings.openai_api_key
        if not key:
            raise ConfigurationError("OPENAI_API_KEY is not set")
        # SDK-level retries are off; quota retries happen in call_with_retry
        self.client = AsyncOpenAI(
            api_key=key,
            timeout=timeout or settings.llm_timeout_seconds,
            max_retries=0,
        )
        self.model = model or settings.openai_model
        self.temperature = settings.llm_temperature if temperature is None else temperature
        self.max_tokens = max_tokens or settings.llm_max_tokens
        self.name = self.model

    async def generate(self, prompt: str) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        )
        return response.choices[0].message.content or ""


class AnthropicProvider:
    """
    Wrapper around the async Anthropic client.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        key = api_key or settings.anthropic_api_key
        if not key:
            raise ConfigurationError("ANTHROPIC_API_KEY is not set")
        self.client = AsyncAnthropic(
            api_key=key,
            timeout=timeout or settings.llm_timeout_seconds,
            max_retries=0,
        )
        self.model = model or settings.anthropic_model
        self.temperature = settings.llm_temperature if temperature is None else temperature
        self.max_tokens = max_tokens or settings.llm_max_tokens
        self.name = self.model

    async def generate(self, prompt: str) -> str:
        response = await self.client.messages.create(
            model=self.model,
            system=SYSTEM_PROMPT,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )
        return "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )


def get_llm_provider(config: Optional[Settings] = None) -> LLMProvider:
    """
    Pick the active provider from configured credentials.

    OpenAI is tried first, Anthropic second. A provider whose constructor
    raises is skipped in favour of the next one.

    Raises:
        ConfigurationError: no credentials, or every configured provider failed
    """
    config = config or settings
    candidates: List[Tuple[str, Callable[[], LLMProvider]]] = []

    if config.openai_api_key:
        candidates.append(("openai", lambda: OpenAIProvider(
            api_key=config.openai_api_key,
            model=config.openai_model,
            temperature=config.llm_temperature,
            max_tokens=config.llm_max_tokens,
            timeout=config.llm_timeout_seconds,
        )))
    if config.anthropic_api_key:
        candidates.append(("anthropic", lambda: AnthropicProvider(
            api_key=config.anthropic_api_key,
            model=config.anthropic_model,
            temperature=config.llm_temperature,
            max_tokens=config.llm_max_tokens,
            timeout=config.llm_timeout_seconds,
        )))

    if not candidates:
        raise ConfigurationError(
            "No model provider configured. Set OPENAI_API_KEY or ANTHROPIC_API_KEY.",
            error_code="missing_credentials",
        )

    last_error: Optional[Exception] = None
    for provider_name, factory in candidates:
        try:
            provider = factory()
        except Exception as e:
            logger.warning("Provider initialisation failed", provider=provider_name, error=str(e))
            last_error = e
            continue
        logger.info("Model provider selected", provider=provider_name, model=provider.name)
        return provider

    raise ConfigurationError(
        f"Could not initialise any model provider: {last_error}",
        error_code="provider_init_failed",
    )


class LLMInvoker:
    """
    Provider + shared rate limiter + quota retry, as one call site.

    Stage functions only ever call `generate(prompt, stage=...)`.
    """

    def __init__(
        self,
        provider: LLMProvider,
        rate_limiter: SlidingWindowRateLimiter,
        max_retries: Optional[int] = None,
        max_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.provider = provider
        self.rate_limiter = rate_limiter
        self.max_retries = settings.llm_max_retries if max_retries is None else max_retries
        self.max_delay = settings.llm_retry_max_delay if max_delay is None else max_delay
        self._sleep = sleep

    @property
    def model_name(self) -> str:
        return self.provider.name

    async def generate(self, prompt: str, stage: str = "model_call") -> str:
        await self.rate_limiter.wait_if_needed()
        metrics.increment("llm.calls")
        return await call_with_retry(
            lambda: self.provider.generate(prompt),
            max_retries=self.max_retries,
            max_delay=self.max_delay,
            stage=stage,
            sleep=self._sleep,
        )
