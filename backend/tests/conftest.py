"""Shared fixtures for backend tests."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from promptchain.graph.ir import GenerationResult
from promptchain.providers.base import (
    GenerationParams,
    MissingCredentialError,
    ModelInfo,
    Provider,
    ProviderDescriptor,
    ProviderRequest,
)
from promptchain.providers.registry import ProviderRegistry
from promptchain.runtime.node_processor import NodeProcessor
from promptchain.services.settings_store import AppSettings, ProviderSettings, SettingsStore
from promptchain.utils.metrics import MetricsCollector


# ── Scripted provider ───────────────────────────────────────────


class ScriptedProvider(Provider):
    """Provider that answers from a script instead of the network.

    Each call is recorded in ``calls``. Replies are consumed in order; once
    exhausted the prompt is echoed back. ``fail_with`` makes every call raise,
    and ``gate`` (an asyncio.Event) holds each call until it is set.
    """

    descriptor = ProviderDescriptor(
        id="scripted",
        name="Scripted",
        models=(ModelInfo("scripted-1", "Scripted One"), ModelInfo("scripted-2", "Scripted Two")),
        model_identifiers=("scripted",),
        default_model="scripted-1",
    )

    def __init__(self, replies: list[str] | None = None, fail_with: Exception | None = None):
        super().__init__()
        self.replies = list(replies or [])
        self.fail_with = fail_with
        self.gate: asyncio.Event | None = None
        self.calls: list[dict[str, Any]] = []

    def build_request(self, model, prompt, params, credential) -> ProviderRequest:
        raise NotImplementedError

    def parse_response(self, model, data) -> GenerationResult:
        raise NotImplementedError

    async def invoke(self, model: str, prompt: str, params: GenerationParams, credential: str | None):
        if not credential:
            raise MissingCredentialError(self.id)
        self.calls.append({
            "model": model,
            "prompt": prompt,
            "temperature": params.temperature,
            "max_tokens": params.max_tokens,
            "credential": credential,
        })
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        text = self.replies.pop(0) if self.replies else f"echo: {prompt}"
        # Surrounding whitespace is stripped by the node processor
        return GenerationResult(text=f"  {text}\n", model=model, provider_id=self.id)


def scripted_settings(enabled: bool = True, api_key: str = "test-key") -> AppSettings:
    return AppSettings(
        providers={"scripted": ProviderSettings(enabled=enabled, api_key=api_key)},
        default_provider="scripted",
        default_model="scripted-1",
    )


# ── Flow documents ──────────────────────────────────────────────


def input_node(node_id: str, content: str) -> dict:
    return {"id": node_id, "type": "input", "data": {"content": content}}


def model_node(node_id: str, **data: Any) -> dict:
    data.setdefault("providerId", "scripted")
    data.setdefault("model", "scripted-1")
    return {"id": node_id, "type": "model", "data": data}


def output_node(node_id: str) -> dict:
    return {"id": node_id, "type": "output", "data": {}}


def edge(source: str, target: str) -> dict:
    return {"id": f"e{source}-{target}", "source": source, "target": target}


@pytest.fixture
def linear_flow() -> dict:
    """input → model → output."""
    return {
        "nodes": [input_node("1", "Tell me a story"), model_node("2"), output_node("3")],
        "edges": [edge("1", "2"), edge("2", "3")],
    }


@pytest.fixture
def fan_in_flow() -> dict:
    """Two inputs feeding one model node, then an output."""
    return {
        "nodes": [
            input_node("a", "foo"),
            input_node("b", "bar"),
            model_node("m"),
            output_node("out"),
        ],
        "edges": [edge("a", "m"), edge("b", "m"), edge("m", "out")],
    }


@pytest.fixture
def cyclic_flow() -> dict:
    return {
        "nodes": [model_node("A"), model_node("B")],
        "edges": [edge("A", "B"), edge("B", "A")],
    }


# ── Runtime wiring ──────────────────────────────────────────────


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def registry(provider) -> ProviderRegistry:
    reg = ProviderRegistry(fallback_provider="scripted")
    reg.register(provider)
    return reg


@pytest.fixture
def store() -> SettingsStore:
    return SettingsStore(initial=scripted_settings(), env_prefix=None)


@pytest.fixture
def unconfigured_store() -> SettingsStore:
    return SettingsStore(initial=scripted_settings(enabled=False, api_key=""), env_prefix=None)


@pytest.fixture
def processor(registry, store) -> NodeProcessor:
    return NodeProcessor(registry, store)


@pytest.fixture
def collector() -> MetricsCollector:
    return MetricsCollector()
