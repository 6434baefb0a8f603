"""Tests for the node processor (single-node evaluation)."""

from __future__ import annotations

import pytest

from conftest import ScriptedProvider, scripted_settings
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
from promptchain.providers.base import ProviderResponseError, UnknownProviderError
from promptchain.providers.registry import ProviderRegistry
from promptchain.runtime.node_processor import (
    NO_INPUT_TEXT,
    NodeProcessor,
    combine_prompt,
)
from promptchain.services.settings_store import SettingsStore


def _edge(source: str, target: str) -> FlowEdge:
    return FlowEdge(edge_id=f"e{source}-{target}", source=source, target=target)


def _model(node_id: str = "m", **kw) -> FlowNode:
    kw.setdefault("provider_id", "scripted")
    kw.setdefault("model_id", "scripted-1")
    return FlowNode(node_id=node_id, kind="model", payload=ModelPayload(**kw))


class TestCombinePrompt:

    def test_joins_upstream_in_edge_order(self):
        results = {"a": GenerationResult(text="foo"), "b": GenerationResult(text="bar")}
        assert combine_prompt(None, [_edge("a", "m"), _edge("b", "m")], results) == "foo\n\nbar"
        assert combine_prompt(None, [_edge("b", "m"), _edge("a", "m")], results) == "bar\n\nfoo"

    def test_own_content_first(self):
        results = {"a": GenerationResult(text="story")}
        assert combine_prompt("Critique:", [_edge("a", "m")], results) == "Critique:\n\nstory"

    def test_content_alone(self):
        assert combine_prompt("Just this", [], {}) == "Just this"

    def test_missing_upstream_skipped(self):
        results = {"b": GenerationResult(text="bar")}
        assert combine_prompt(None, [_edge("a", "m"), _edge("b", "m")], results) == "bar"

    def test_nothing_to_combine(self):
        assert combine_prompt(None, [], {}) == ""


class TestSimpleNodes:

    @pytest.mark.asyncio
    async def test_input_returns_content(self, processor):
        node = FlowNode(node_id="1", kind="input", payload=InputPayload(content="hello"))
        result = await processor.process(node, {}, [])
        assert result.text == "hello"
        assert result.error is False

    @pytest.mark.asyncio
    async def test_output_passes_first_upstream_through(self, processor):
        upstream = GenerationResult(text="final", model="scripted-1", provider_id="scripted")
        node = FlowNode(node_id="o", kind="output", payload=OutputPayload())
        result = await processor.process(node, {"m": upstream}, [_edge("m", "o")])
        assert result is upstream

    @pytest.mark.asyncio
    async def test_output_first_available_inbound_wins(self, processor):
        results = {"b": GenerationResult(text="from b"), "c": GenerationResult(text="from c")}
        node = FlowNode(node_id="o", kind="output", payload=OutputPayload())
        edges = [_edge("a", "o"), _edge("b", "o"), _edge("c", "o")]
        result = await processor.process(node, results, edges)
        assert result.text == "from b"

    @pytest.mark.asyncio
    async def test_output_without_input(self, processor):
        node = FlowNode(node_id="o", kind="output", payload=OutputPayload())
        result = await processor.process(node, {}, [])
        assert result.text == NO_INPUT_TEXT
        assert result.error is False

    @pytest.mark.asyncio
    async def test_custom_node(self, processor):
        node = FlowNode(node_id="c", kind="custom", payload=CustomPayload(content="uppercase"))
        assert (await processor.process(node, {}, [])).text == "Custom processing: uppercase"

    @pytest.mark.asyncio
    async def test_custom_node_without_logic(self, processor):
        node = FlowNode(node_id="c", kind="custom", payload=CustomPayload())
        assert (await processor.process(node, {}, [])).text == "Custom processing: No custom logic defined"

    @pytest.mark.asyncio
    async def test_unknown_node_fails(self, processor):
        node = FlowNode(node_id="x", kind="webhook", payload=UnknownPayload(raw_type="webhook"))
        result = await processor.process(node, {}, [])
        assert result.error is True
        assert result.text == "Unknown node type: webhook"


class TestModelNode:

    @pytest.mark.asyncio
    async def test_prompt_is_aggregated_upstream(self, processor, provider):
        results = {"a": GenerationResult(text="foo"), "b": GenerationResult(text="bar")}
        await processor.process(_model(), results, [_edge("a", "m"), _edge("b", "m")])
        assert provider.calls[0]["prompt"] == "foo\n\nbar"

    @pytest.mark.asyncio
    async def test_swapped_edges_swap_prompt(self, processor, provider):
        results = {"a": GenerationResult(text="foo"), "b": GenerationResult(text="bar")}
        await processor.process(_model(), results, [_edge("b", "m"), _edge("a", "m")])
        assert provider.calls[0]["prompt"] == "bar\n\nfoo"

    @pytest.mark.asyncio
    async def test_content_prefix(self, processor, provider):
        results = {"a": GenerationResult(text="story")}
        await processor.process(_model(content="Rate this:"), results, [_edge("a", "m")])
        assert provider.calls[0]["prompt"] == "Rate this:\n\nstory"

    @pytest.mark.asyncio
    async def test_result_text_is_stripped(self, processor):
        processor.registry.get("scripted").replies = ["answer"]
        result = await processor.process(_model(), {}, [])
        assert result.text == "answer"
        assert result.model == "scripted-1"
        assert result.provider_id == "scripted"

    @pytest.mark.asyncio
    async def test_default_parameters(self, processor, provider):
        await processor.process(_model(), {}, [])
        assert provider.calls[0]["temperature"] == 0.7
        assert provider.calls[0]["max_tokens"] == 500

    @pytest.mark.asyncio
    async def test_explicit_zero_temperature_honoured(self, processor, provider):
        await processor.process(_model(temperature=0.0, max_tokens=42), {}, [])
        assert provider.calls[0]["temperature"] == 0.0
        assert provider.calls[0]["max_tokens"] == 42

    @pytest.mark.asyncio
    async def test_configured_defaults(self, registry, store, provider):
        processor = NodeProcessor(registry, store, default_temperature=0.3, default_max_tokens=64)
        await processor.process(_model(), {}, [])
        assert provider.calls[0]["temperature"] == 0.3
        assert provider.calls[0]["max_tokens"] == 64

    @pytest.mark.asyncio
    async def test_credential_passed_to_provider(self, processor, provider):
        await processor.process(_model(), {}, [])
        assert provider.calls[0]["credential"] == "test-key"

    @pytest.mark.asyncio
    async def test_missing_credential_yields_error_result(self, registry, unconfigured_store, provider):
        processor = NodeProcessor(registry, unconfigured_store)
        result = await processor.process(_model(), {}, [])
        assert result.error is True
        assert result.text == "Error: No API key configured for provider 'scripted'"
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_provider_failure_yields_error_result(self, store):
        failing = ScriptedProvider(fail_with=ProviderResponseError("quota exceeded (HTTP 429)", status_code=429))
        reg = ProviderRegistry(fallback_provider="scripted")
        reg.register(failing)
        result = await NodeProcessor(reg, store).process(_model(), {}, [])
        assert result.error is True
        assert result.text == "Error: quota exceeded (HTTP 429)"
        assert result.provider_id == "scripted"
        assert result.model == "scripted-1"

    @pytest.mark.asyncio
    async def test_unknown_provider_yields_error_result(self, processor):
        result = await processor.process(_model(provider_id="nope"), {}, [])
        assert result.error is True
        assert result.text == "Error: Unknown provider: nope"


class TestResolveTarget:

    def test_explicit_pair_kept(self, processor):
        assert processor.resolve_target(ModelPayload(provider_id="scripted", model_id="scripted-2")) == (
            "scripted",
            "scripted-2",
        )

    def test_neither_set_uses_store_defaults(self, registry):
        settings = scripted_settings()
        settings.default_model = "scripted-2"
        processor = NodeProcessor(registry, SettingsStore(initial=settings, env_prefix=None))
        assert processor.resolve_target(ModelPayload()) == ("scripted", "scripted-2")

    def test_provider_only_uses_provider_default_model(self, processor):
        assert processor.resolve_target(ModelPayload(provider_id="scripted")) == ("scripted", "scripted-1")

    def test_provider_only_unknown_raises(self, processor):
        with pytest.raises(UnknownProviderError):
            processor.resolve_target(ModelPayload(provider_id="nope"))

    def test_model_only_resolved_through_registry(self, processor):
        assert processor.resolve_target(ModelPayload(model_id="scripted-2")) == ("scripted", "scripted-2")
