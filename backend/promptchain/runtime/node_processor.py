"""Node processor: evaluates one flow node given the results produced so far.

  - input   → its literal content
  - model   → upstream texts (plus own prefix) sent to a provider
  - output  → first upstream result, verbatim
  - custom  → echo of its own content
  - unknown → failed result

Every failure comes back as a ``GenerationResult`` with ``error=True``; nothing
raised by a provider escapes ``process``.
"""

from __future__ import annotations

import logging
from typing import Mapping, Protocol, Sequence

from promptchain.graph.ir import (
    CustomPayload,
    FlowEdge,
    FlowNode,
    GenerationResult,
    InputPayload,
    ModelPayload,
    OutputPayload,
    UnknownPayload,
)
from promptchain.providers.base import GenerationParams, ProviderError, UnknownProviderError
from promptchain.providers.registry import ProviderRegistry

logger = logging.getLogger("promptchain.runtime.node_processor")

NO_INPUT_TEXT = "No input received"
NO_CUSTOM_LOGIC_TEXT = "No custom logic defined"
PROMPT_SEPARATOR = "\n\n"


class CredentialStore(Protocol):
    default_provider: str
    default_model: str

    def credential_for(self, provider_id: str) -> str | None: ...

    def is_any_provider_configured(self) -> bool: ...


def combine_prompt(
    content: str | None,
    inbound_edges: Sequence[FlowEdge],
    results: Mapping[str, GenerationResult],
) -> str:
    """Own content first, then each upstream text in inbound-edge order, blank-line separated."""
    blocks: list[str] = []
    if content:
        blocks.append(content)
    for edge in inbound_edges:
        upstream = results.get(edge.source)
        if upstream is not None:
            blocks.append(upstream.text)
    return PROMPT_SEPARATOR.join(blocks)


class NodeProcessor:
    """Evaluates nodes; holds the provider registry and the credential store."""

    def __init__(
        self,
        registry: ProviderRegistry,
        credentials: CredentialStore,
        default_temperature: float = 0.7,
        default_max_tokens: int = 500,
    ):
        self.registry = registry
        self.credentials = credentials
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens

    async def process(
        self,
        node: FlowNode,
        results: Mapping[str, GenerationResult],
        inbound_edges: Sequence[FlowEdge],
    ) -> GenerationResult:
        payload = node.payload

        if isinstance(payload, InputPayload):
            return GenerationResult(text=payload.content or "")

        if isinstance(payload, ModelPayload):
            return await self._process_model(node, payload, results, inbound_edges)

        if isinstance(payload, OutputPayload):
            for edge in inbound_edges:
                upstream = results.get(edge.source)
                if upstream is not None:
                    return upstream
            return GenerationResult(text=NO_INPUT_TEXT)

        if isinstance(payload, CustomPayload):
            return GenerationResult(
                text=f"Custom processing: {payload.content or NO_CUSTOM_LOGIC_TEXT}"
            )

        if isinstance(payload, UnknownPayload):
            logger.warning("Node %s has unknown type %r", node.node_id, payload.raw_type)
            return GenerationResult(text=f"Unknown node type: {payload.raw_type}", error=True)

        raise TypeError(f"Unhandled node payload {type(payload).__name__}")

    def resolve_target(self, payload: ModelPayload) -> tuple[str, str]:
        """Pick (provider_id, model_id) for a model node, filling in defaults."""
        provider_id = payload.provider_id
        model_id = payload.model_id
        if not provider_id and not model_id:
            return self.credentials.default_provider, self.credentials.default_model
        if not model_id:
            provider = self.registry.get(provider_id)  # type: ignore[arg-type]
            if provider is None:
                raise UnknownProviderError(provider_id)  # type: ignore[arg-type]
            return provider.id, provider.descriptor.default_model
        if not provider_id:
            return self.registry.resolve_provider(model_id), model_id
        return provider_id, model_id

    async def _process_model(
        self,
        node: FlowNode,
        payload: ModelPayload,
        results: Mapping[str, GenerationResult],
        inbound_edges: Sequence[FlowEdge],
    ) -> GenerationResult:
        prompt = combine_prompt(payload.content, inbound_edges, results)
        params = GenerationParams(
            temperature=self.default_temperature if payload.temperature is None else payload.temperature,
            max_tokens=self.default_max_tokens if payload.max_tokens is None else payload.max_tokens,
        )
        provider_id: str | None = payload.provider_id
        model_id: str | None = payload.model_id
        try:
            provider_id, model_id = self.resolve_target(payload)
            logger.info(
                "Model node %s: provider=%s model=%s prompt=%s",
                node.node_id, provider_id, model_id, prompt[:100],
            )
            credential = self.credentials.credential_for(provider_id)
            result = await self.registry.invoke(provider_id, model_id, prompt, params, credential)
        except ProviderError as exc:
            logger.warning("Model node %s failed: %s", node.node_id, exc)
            return GenerationResult.failure(str(exc), model=model_id, provider_id=provider_id)

        result.text = result.text.strip()
        return result
