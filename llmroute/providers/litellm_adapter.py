"""LiteLLM-backed provider adapter.

All providers are reached through a LiteLLM proxy so API keys stay out of
the application and models can be swapped by configuration. This module:
- Opens a streaming litellm.acompletion() call, retrying transient
  failures with exponential backoff via tenacity
- Forwards each delta as a text fragment
- Reads usage from the final chunk, estimating it from characters when
  the provider does not report counts while streaming
- Normalizes errors to the ProviderError family
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import litellm
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from llmroute.config import Settings
from llmroute.errors import ProviderError, ProviderRateLimitError, ProviderUnavailableError
from llmroute.messages import ChatMessage, UsageRecord
from llmroute.providers.base import ProviderStream
from llmroute.routing.catalog import ModelSpec
from llmroute.routing.tokens import estimate_message_tokens, estimate_tokens

log = structlog.get_logger(__name__)

# Types of errors worth retrying (transient network/rate-limit failures)
_RETRYABLE = (
    litellm.exceptions.RateLimitError,
    litellm.exceptions.ServiceUnavailableError,
    litellm.exceptions.Timeout,
    ConnectionError,
)

# Catalog provider -> LiteLLM model prefix
_LITELLM_PREFIX = {
    "openai": "openai",
    "anthropic": "anthropic",
    "google": "gemini",
    "mistral": "mistral",
}


def litellm_model_name(model: ModelSpec) -> str:
    prefix = _LITELLM_PREFIX.get(model.provider.lower(), model.provider.lower())
    return f"{prefix}/{model.id}"


class LiteLLMAdapter:
    """Streams completions for any catalog provider through the LiteLLM proxy."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        litellm.api_base = settings.litellm_base_url
        litellm.api_key = settings.litellm_api_key.get_secret_value()

    def stream(
        self,
        messages: list[ChatMessage],
        model: ModelSpec,
        temperature: float,
    ) -> ProviderStream:
        return ProviderStream(self._generate(messages, model, temperature))

    @retry(
        retry=retry_if_exception_type(_RETRYABLE),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _open(self, messages: list[ChatMessage], model: ModelSpec, temperature: float) -> Any:
        return await litellm.acompletion(
            model=litellm_model_name(model),
            messages=[m.to_provider() for m in messages],
            temperature=temperature,
            stream=True,
            stream_options={"include_usage": True},
        )

    async def _generate(
        self,
        messages: list[ChatMessage],
        model: ModelSpec,
        temperature: float,
    ) -> AsyncIterator[str | UsageRecord]:
        log.debug(
            "litellm.stream_request",
            model=litellm_model_name(model),
            message_count=len(messages),
        )

        try:
            response = await self._open(messages, model, temperature)
        except litellm.exceptions.RateLimitError as exc:
            raise ProviderRateLimitError(f"Rate limit from {model.provider}: {exc}") from exc
        except (litellm.exceptions.ServiceUnavailableError, ConnectionError) as exc:
            raise ProviderUnavailableError(f"{model.provider} unavailable: {exc}") from exc
        except Exception as exc:
            raise ProviderError(f"{model.provider} request failed: {exc}") from exc

        completion_parts: list[str] = []
        reported: Any = None
        try:
            async for chunk in response:
                usage = getattr(chunk, "usage", None)
                if usage:
                    reported = usage
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    completion_parts.append(content)
                    yield content
        except litellm.exceptions.RateLimitError as exc:
            raise ProviderRateLimitError(f"Rate limit from {model.provider}: {exc}") from exc
        except Exception as exc:
            raise ProviderError(f"{model.provider} stream failed: {exc}") from exc

        if reported is not None:
            record = UsageRecord(
                prompt_tokens=reported.prompt_tokens,
                completion_tokens=reported.completion_tokens,
                total_tokens=reported.total_tokens,
            )
        else:
            chars_per_token = self._settings.chars_per_token
            prompt_tokens = estimate_message_tokens(messages, chars_per_token)
            completion_tokens = estimate_tokens("".join(completion_parts), chars_per_token)
            record = UsageRecord(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            )

        log.info(
            "litellm.stream_done",
            model=litellm_model_name(model),
            prompt_tokens=record.prompt_tokens,
            completion_tokens=record.completion_tokens,
            total_tokens=record.total_tokens,
            estimated=reported is None,
        )
        yield record
