"""Anthropic provider (Messages API)."""

from __future__ import annotations

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

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(Provider):
    descriptor = ProviderDescriptor(
        id="anthropic",
        name="Anthropic",
        description="Anthropic API provider for Claude models",
        url="https://console.anthropic.com/",
        model_identifiers=("claude",),
        models=(
            ModelInfo("claude-3-haiku-20240307", "Claude 3 Haiku"),
            ModelInfo("claude-3-sonnet-20240229", "Claude 3 Sonnet"),
            ModelInfo("claude-3-opus-20240229", "Claude 3 Opus"),
            ModelInfo("claude-3-sonnet", "Claude 3 Sonnet"),
            ModelInfo("claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet"),
            ModelInfo("claude-3-5-haiku-20241022", "Claude 3.5 Haiku"),
            ModelInfo("claude-3-7-sonnet-20250219", "Claude 3.7 Sonnet"),
        ),
        default_model="claude-3-haiku-20240307",
    )
    base_url = "https://api.anthropic.com/v1"
    system_prompt = "You are a helpful assistant."

    def build_request(
        self, model: str, prompt: str, params: GenerationParams, credential: str
    ) -> ProviderRequest:
        return ProviderRequest(
            url=f"{self.base_url}/messages",
            headers={
                "x-api-key": credential,
                "anthropic-version": ANTHROPIC_VERSION,
                "Content-Type": "application/json",
            },
            body={
                "model": model,
                "system": self.system_prompt,
                "messages": [{"role": "user", "content": prompt}],
                "max_tokens": params.max_tokens,
                "temperature": params.temperature,
            },
        )

    def parse_response(self, model: str, data: dict[str, Any]) -> GenerationResult:
        # content is a list of blocks; only text blocks carry output
        blocks = data["content"]
        if not blocks:
            raise KeyError("content")
        text = "".join(b.get("text", "") for b in blocks if b.get("type", "text") == "text")
        usage = data.get("usage") or {}
        return GenerationResult(
            text=text,
            model=model,
            provider_id=self.id,
            usage=usage_dict(usage.get("input_tokens"), usage.get("output_tokens")),
        )
