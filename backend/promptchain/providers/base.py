"""Provider abstraction: one implementation per text-generation back-end.

Every provider is structurally the same: build a provider-specific request,
POST it with ``httpx``, normalise the response into a ``GenerationResult``.
Subclasses only supply ``build_request`` and ``parse_response`` (and
optionally ``error_message`` to pull a readable reason out of an error body).
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from promptchain.graph.ir import GenerationResult
from promptchain.utils.metrics import MetricsCollector, record_provider_call

logger = logging.getLogger("promptchain.providers")


# ── Descriptors ────────────────────────────────────────────────


@dataclass(frozen=True)
class ModelInfo:
    id: str
    name: str


@dataclass(frozen=True)
class ProviderDescriptor:
    id: str
    name: str
    models: tuple[ModelInfo, ...]
    model_identifiers: tuple[str, ...]
    default_model: str
    description: str = ""
    url: str = ""

    def has_model(self, model_id: str) -> bool:
        return any(m.id == model_id for m in self.models)

    def matches(self, model_id: str) -> bool:
        return any(ident in model_id for ident in self.model_identifiers)


@dataclass(frozen=True)
class GenerationParams:
    temperature: float = 0.7
    max_tokens: int = 500


@dataclass(frozen=True)
class ProviderRequest:
    url: str
    headers: dict[str, str]
    body: dict[str, Any]


# ── Errors ─────────────────────────────────────────────────────


class ProviderError(Exception):
    """Base class for every failure raised while invoking a provider."""


class MissingCredentialError(ProviderError):
    def __init__(self, provider_id: str):
        self.provider_id = provider_id
        super().__init__(f"No API key configured for provider '{provider_id}'")


class UnknownProviderError(ProviderError):
    def __init__(self, provider_id: str):
        self.provider_id = provider_id
        super().__init__(f"Unknown provider: {provider_id}")


class ProviderTransportError(ProviderError):
    pass


class ProviderResponseError(ProviderError):
    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


# ── Base implementation ────────────────────────────────────────


class Provider(ABC):
    """Common invocation flow shared by all providers.

    Parameters
    ----------
    timeout : float
        Per-request timeout handed to ``httpx.AsyncClient``.
    transport : httpx.AsyncBaseTransport | None
        Optional transport override (``httpx.MockTransport`` in tests).
    metrics : MetricsCollector | None
        Collector for latency observations; the process-wide one by default.
    """

    descriptor: ProviderDescriptor

    def __init__(
        self,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self.timeout = timeout
        self._transport = transport
        self._metrics = metrics

    @property
    def id(self) -> str:
        return self.descriptor.id

    @abstractmethod
    def build_request(
        self, model: str, prompt: str, params: GenerationParams, credential: str
    ) -> ProviderRequest:
        ...

    @abstractmethod
    def parse_response(self, model: str, data: dict[str, Any]) -> GenerationResult:
        """Normalise a successful response body. May raise KeyError/IndexError/TypeError."""

    def error_message(self, data: Any) -> str | None:
        if isinstance(data, dict):
            err = data.get("error")
            if isinstance(err, dict) and err.get("message"):
                return str(err["message"])
            if isinstance(err, str):
                return err
            if data.get("message"):
                return str(data["message"])
        return None

    async def invoke(
        self, model: str, prompt: str, params: GenerationParams, credential: str | None
    ) -> GenerationResult:
        if not credential:
            raise MissingCredentialError(self.id)

        request = self.build_request(model, prompt, params, credential)
        logger.info("Provider call: provider=%s model=%s url=%s", self.id, model, request.url)

        started = time.monotonic()
        ok = False
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(request.url, headers=request.headers, json=request.body)

            try:
                data = resp.json()
            except ValueError:
                data = None

            if resp.status_code >= 400:
                reason = self.error_message(data) or f"{self.descriptor.name} API call failed"
                raise ProviderResponseError(
                    f"{reason} (HTTP {resp.status_code})", status_code=resp.status_code
                )
            if not isinstance(data, dict):
                raise ProviderResponseError(
                    f"{self.descriptor.name} returned a non-JSON response", status_code=resp.status_code
                )

            try:
                result = self.parse_response(model, data)
            except (KeyError, IndexError, TypeError, ValueError) as exc:
                detail = f"missing {exc}" if isinstance(exc, (KeyError, IndexError)) else str(exc)
                raise ProviderResponseError(
                    f"Malformed {self.descriptor.name} response: {detail}",
                    status_code=resp.status_code,
                ) from exc
            ok = True
            return result
        except httpx.TimeoutException as exc:
            raise ProviderTransportError(f"{self.descriptor.name} request timed out") from exc
        except httpx.RequestError as exc:
            raise ProviderTransportError(str(exc) or exc.__class__.__name__) from exc
        finally:
            record_provider_call(self.id, time.monotonic() - started, ok, collector=self._metrics)


def usage_dict(prompt_tokens: Any, completion_tokens: Any, total_tokens: Any = None) -> dict[str, int]:
    prompt = int(prompt_tokens or 0)
    completion = int(completion_tokens or 0)
    total = int(total_tokens) if total_tokens is not None else prompt + completion
    return {
        "prompt_tokens": prompt,
        "completion_tokens": completion,
        "total_tokens": total,
    }
