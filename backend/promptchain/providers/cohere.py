"""Cohere provider (v1 generate API)."""

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


class CohereProvider(Provider):
    descriptor = ProviderDescriptor(
        id="cohere",
        name="Cohere",
        description="Cohere API provider",
        url="https://dashboard.cohere.com/",
        model_identifiers=("command",),
        models=(
            ModelInfo("command", "Command"),
            ModelInfo("command-light", "Command Light"),
            ModelInfo("command-nightly", "Command Nightly"),
        ),
        default_model="command",
    )
    base_url = "https://api.cohere.ai/v1"
    api_version = "2022-12-06"

    def build_request(
        self, model: str, prompt: str, params: GenerationParams, credential: str
    ) -> ProviderRequest:
        return ProviderRequest(
            url=f"{self.base_url}/generate",
            headers={
                "Authorization": f"Bearer {credential}",
                "Content-Type": "application/json",
                "Cohere-Version": self.api_version,
            },
            body={
                "model": model,
                "prompt": prompt,
                "temperature": params.temperature,
                "max_tokens": params.max_tokens,
            },
        )

    def parse_response(self, model: str, data: dict[str, Any]) -> GenerationResult:
        text = data["generations"][0]["text"]
        billed = (data.get("meta") or {}).get("billed_units") or {}
        usage = None
        if billed:
            usage = usage_dict(billed.get("input_tokens"), billed.get("output_tokens"))
        return GenerationResult(text=text, model=model, provider_id=self.id, usage=usage)
