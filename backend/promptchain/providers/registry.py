"""Provider registry: catalog of providers and model → provider resolution."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from promptchain.graph.ir import GenerationResult
from promptchain.providers.base import (
    GenerationParams,
    Provider,
    ProviderDescriptor,
    UnknownProviderError,
)

if TYPE_CHECKING:
    from promptchain.services.settings_store import AppSettings

logger = logging.getLogger("promptchain.providers.registry")

FALLBACK_PROVIDER = "openai"


class ProviderRegistry:
    """Open set of providers keyed by id, in registration order."""

    def __init__(self, fallback_provider: str = FALLBACK_PROVIDER):
        self._providers: dict[str, Provider] = {}
        self.fallback_provider = fallback_provider

    def register(self, provider: Provider) -> None:
        if provider.id in self._providers:
            logger.warning("Provider %s re-registered; replacing previous implementation", provider.id)
        self._providers[provider.id] = provider

    def get(self, provider_id: str) -> Provider | None:
        return self._providers.get(provider_id)

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._providers

    def provider_ids(self) -> list[str]:
        return list(self._providers)

    def descriptors(self) -> list[ProviderDescriptor]:
        return [p.descriptor for p in self._providers.values()]

    def resolve_provider(self, model_id: str | None) -> str:
        """Return the id of the provider owning *model_id*.

        Exact catalog match wins over keyword match; unknown ids fall back to
        the registry's fallback provider so they are still dispatched.
        """
        if not model_id:
            return self.fallback_provider
        for provider in self._providers.values():
            if provider.descriptor.has_model(model_id):
                return provider.id
        for provider in self._providers.values():
            if provider.descriptor.matches(model_id):
                return provider.id
        logger.debug("No provider matches model %r; using %s", model_id, self.fallback_provider)
        return self.fallback_provider

    def all_models(
        self, enabled_only: bool = True, settings: "AppSettings | None" = None
    ) -> list[dict[str, Any]]:
        """Flattened model list with provider info.

        With ``enabled_only`` and a settings object, providers explicitly
        disabled in the settings are skipped.
        """
        models: list[dict[str, Any]] = []
        for provider in self._providers.values():
            if enabled_only and settings is not None:
                entry = settings.providers.get(provider.id)
                if entry is not None and not entry.enabled:
                    continue
            for m in provider.descriptor.models:
                models.append({
                    "provider_id": provider.id,
                    "provider_name": provider.descriptor.name,
                    "id": m.id,
                    "name": m.name,
                })
        return models

    async def invoke(
        self,
        provider_id: str,
        model_id: str,
        prompt: str,
        params: GenerationParams,
        credential: str | None,
    ) -> GenerationResult:
        provider = self.get(provider_id)
        if provider is None:
            raise UnknownProviderError(provider_id)
        return await provider.invoke(model_id, prompt, params, credential)


def default_registry(
    timeout: float = 60.0,
    transport: httpx.AsyncBaseTransport | None = None,
    fallback_provider: str = FALLBACK_PROVIDER,
) -> ProviderRegistry:
    """Registry with every built-in provider."""
    from promptchain.providers.anthropic import AnthropicProvider
    from promptchain.providers.cohere import CohereProvider
    from promptchain.providers.openai_compatible import (
        DeepSeekProvider,
        GrokProvider,
        MistralProvider,
        OpenAIProvider,
        OpenRouterProvider,
    )

    registry = ProviderRegistry(fallback_provider=fallback_provider)
    for cls in (
        OpenAIProvider,
        AnthropicProvider,
        MistralProvider,
        CohereProvider,
        DeepSeekProvider,
        GrokProvider,
        OpenRouterProvider,
    ):
        registry.register(cls(timeout=timeout, transport=transport))
    return registry
