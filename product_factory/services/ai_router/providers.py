"""pydantic-ai model factory for the provider key pool."""

from __future__ import annotations

import logging
import time
from typing import Any

from pydantic_ai import Agent

from product_factory.core.exceptions import GenerationError, UnsupportedProviderError
from product_factory.services.ai_router.types import GenerationResult, ProviderCandidate

logger = logging.getLogger(__name__)

OPENAI_COMPATIBLE_PROVIDERS = frozenset(
    {"openai", "deepseek", "qwen", "kimi", "glm", "doubao", "groq", "proxy"}
)

DEFAULT_BASE_URLS: dict[str, str] = {
    "deepseek": "https://api.deepseek.com/v1",
    "qwen": "https://dashscope.aliyuncs.com/compatible-mode/v1",
    "kimi": "https://api.moonshot.cn/v1",
    "groq": "https://api.groq.com/openai/v1",
}


def normalize_openai_base_url(base_url: str | None, provider: str) -> str | None:
    """Resolve the base URL for an OpenAI-compatible endpoint.

    Custom URLs get a ``/v1`` suffix when it is missing; known providers
    without a custom URL use their public endpoint.
    """
    if base_url and base_url.strip():
        normalized = base_url.strip().rstrip("/")
        if not normalized.endswith("/v1"):
            normalized = f"{normalized}/v1"
        return normalized
    return DEFAULT_BASE_URLS.get(provider)


def build_model(candidate: ProviderCandidate) -> Any:
    """Create a pydantic-ai model bound to the candidate's credential."""
    provider = candidate.provider.strip().lower()

    if provider in OPENAI_COMPATIBLE_PROVIDERS:
        from pydantic_ai.models.openai import OpenAIChatModel
        from pydantic_ai.providers.openai import OpenAIProvider

        return OpenAIChatModel(
            candidate.model,
            provider=OpenAIProvider(
                base_url=normalize_openai_base_url(candidate.base_url, provider),
                api_key=candidate.api_key,
            ),
        )

    if provider == "anthropic":
        from pydantic_ai.models.anthropic import AnthropicModel
        from pydantic_ai.providers.anthropic import AnthropicProvider

        provider_kwargs: dict[str, Any] = {"api_key": candidate.api_key}
        if candidate.base_url:
            provider_kwargs["base_url"] = candidate.base_url
        return AnthropicModel(candidate.model, provider=AnthropicProvider(**provider_kwargs))

    if provider == "google":
        from pydantic_ai.models.google import GoogleModel
        from pydantic_ai.providers.google import GoogleProvider

        return GoogleModel(candidate.model, provider=GoogleProvider(api_key=candidate.api_key))

    raise UnsupportedProviderError(candidate.provider)


class PydanticAIGenerator:
    """Runs a plain-text pydantic-ai agent for one candidate."""

    async def generate(
        self,
        candidate: ProviderCandidate,
        prompt: str,
        *,
        system: str | None,
        temperature: float,
    ) -> GenerationResult:
        model = build_model(candidate)
        agent: Agent[None, str] = Agent(
            model=model,
            output_type=str,
            system_prompt=system or (),
        )

        t0 = time.perf_counter()
        try:
            result = await agent.run(prompt, model_settings={"temperature": temperature})
        except Exception as e:
            raise GenerationError(candidate.provider, candidate.model, str(e)) from e
        elapsed = time.perf_counter() - t0

        usage = result.usage()
        logger.debug(
            "Provider call completed",
            extra={
                "provider": candidate.provider,
                "model": candidate.model,
                "duration_s": round(elapsed, 2),
                "input_tokens": usage.input_tokens,
                "output_tokens": usage.output_tokens,
            },
        )
        return GenerationResult(
            text=result.output,
            provider=candidate.provider,
            model=candidate.model,
            tokens_in=usage.input_tokens or 0,
            tokens_out=usage.output_tokens or 0,
        )
