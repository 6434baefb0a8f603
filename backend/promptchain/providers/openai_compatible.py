"""Providers speaking the OpenAI chat-completions dialect.

OpenAI, Mistral, DeepSeek, Grok and OpenRouter all accept
``POST {base_url}/chat/completions`` with a bearer token and answer with
``choices[0].message.content``; they differ only in base URL, catalog and a
few headers.
"""

from __future__ import annotations

import logging
from typing import Any

from promptchain.graph.ir import GenerationResult
from promptchain.providers.base import (
    GenerationParams,
    ModelInfo,
    Provider,
    ProviderDescriptor,
    ProviderRequest,
    usage_dict,
)

logger = logging.getLogger("promptchain.providers.openai_compatible")

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."


class OpenAICompatibleProvider(Provider):
    """Chat-completions provider.

    ``system_prompt`` is sent as a leading system message when set.
    ``model_prefix`` is stripped from model ids before they go on the wire
    (OpenRouter's catalog ids are namespaced ``openrouter/...``).
    """

    base_url: str = "https://api.openai.com/v1"
    system_prompt: str | None = None
    model_prefix: str | None = None
    extra_headers: dict[str, str] = {}

    def wire_model(self, model: str) -> str:
        if self.model_prefix and model.startswith(self.model_prefix):
            return model[len(self.model_prefix):]
        return model

    def build_request(
        self, model: str, prompt: str, params: GenerationParams, credential: str
    ) -> ProviderRequest:
        headers: dict[str, str] = {
            "Authorization": f"Bearer {credential}",
            "Content-Type": "application/json",
        }
        headers.update(self.extra_headers)

        messages: list[dict[str, Any]] = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": prompt})

        body: dict[str, Any] = {
            "model": self.wire_model(model),
            "messages": messages,
            "temperature": params.temperature,
            "max_tokens": params.max_tokens,
        }
        return ProviderRequest(
            url=f"{self.base_url.rstrip('/')}/chat/completions",
            headers=headers,
            body=body,
        )

    def parse_response(self, model: str, data: dict[str, Any]) -> GenerationResult:
        choices = data["choices"]
        if not choices:
            raise KeyError("choices")
        text = choices[0]["message"]["content"] or ""
        usage = data.get("usage")
        return GenerationResult(
            text=text,
            model=model,
            provider_id=self.id,
            usage=usage_dict(
                usage.get("prompt_tokens"),
                usage.get("completion_tokens"),
                usage.get("total_tokens"),
            ) if isinstance(usage, dict) else None,
        )


class OpenAIProvider(OpenAICompatibleProvider):
    descriptor = ProviderDescriptor(
        id="openai",
        name="OpenAI",
        description="OpenAI API provider for GPT models",
        url="https://platform.openai.com/",
        model_identifiers=("gpt", "o4"),
        models=(
            ModelInfo("gpt-4.1-nano", "GPT-4.1 nano"),
            ModelInfo("gpt-4.1-mini", "GPT-4.1 mini"),
            ModelInfo("o4-mini", "GPT-o4 mini"),
            ModelInfo("gpt-4o", "GPT-4o"),
            ModelInfo("gpt-4o-mini", "GPT-4o mini"),
        ),
        default_model="gpt-4.1-nano",
    )
    base_url = "https://api.openai.com/v1"
    system_prompt = DEFAULT_SYSTEM_PROMPT


class MistralProvider(OpenAICompatibleProvider):
    descriptor = ProviderDescriptor(
        id="mistral",
        name="Mistral AI",
        description="Mistral AI API provider",
        url="https://console.mistral.ai/",
        model_identifiers=("mistral",),
        models=(
            ModelInfo("mistral-small", "Mistral Small"),
            ModelInfo("mistral-medium", "Mistral Medium"),
            ModelInfo("mistral-large", "Mistral Large"),
        ),
        default_model="mistral-small",
    )
    base_url = "https://api.mistral.ai/v1"


class DeepSeekProvider(OpenAICompatibleProvider):
    descriptor = ProviderDescriptor(
        id="deepseek",
        name="DeepSeek",
        description="DeepSeek API provider",
        url="https://platform.deepseek.com/",
        model_identifiers=("deepseek",),
        models=(
            ModelInfo("deepseek-coder", "DeepSeek Coder"),
            ModelInfo("deepseek-llm", "DeepSeek LLM"),
        ),
        default_model="deepseek-coder",
    )
    base_url = "https://api.deepseek.com/v1"


class GrokProvider(OpenAICompatibleProvider):
    descriptor = ProviderDescriptor(
        id="grok",
        name="Grok",
        description="xAI Grok API provider",
        url="https://x.ai/",
        model_identifiers=("grok",),
        models=(ModelInfo("grok-1", "Grok-1"),),
        default_model="grok-1",
    )
    base_url = "https://api.grok.ai/v1"


class OpenRouterProvider(OpenAICompatibleProvider):
    descriptor = ProviderDescriptor(
        id="openrouter",
        name="OpenRouter",
        description="OpenRouter API provider - access to multiple LLM providers",
        url="https://openrouter.ai/",
        model_identifiers=("openrouter",),
        models=(
            ModelInfo("openrouter/auto", "OpenRouter Auto"),
            ModelInfo("openrouter/mix", "OpenRouter Mix"),
        ),
        default_model="openrouter/auto",
    )
    base_url = "https://openrouter.ai/api/v1"
    model_prefix = "openrouter/"
    extra_headers = {
        "HTTP-Referer": "https://promptchain.app",
        "X-Title": "PromptChain",
    }

    def parse_response(self, model: str, data: dict[str, Any]) -> GenerationResult:
        result = super().parse_response(model, data)
        # Keep the catalog id; the routed model is logged for debugging only
        routed = data.get("model")
        if routed:
            logger.debug("OpenRouter routed %s to %s", model, routed)
        return result
