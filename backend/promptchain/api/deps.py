"""FastAPI dependencies resolving the services wired in ``create_app``."""

from __future__ import annotations

from fastapi import Request

from promptchain.providers.registry import ProviderRegistry
from promptchain.services.flow_service import FlowService
from promptchain.services.settings_store import SettingsStore


def get_flow_service(request: Request) -> FlowService:
    return request.app.state.flow_service


def get_registry(request: Request) -> ProviderRegistry:
    return request.app.state.flow_service.registry


def get_settings_store(request: Request) -> SettingsStore:
    return request.app.state.flow_service.store
