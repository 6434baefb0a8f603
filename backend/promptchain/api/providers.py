"""Provider catalog and provider settings API.

Endpoints
---------
GET  /api/providers                   : provider descriptors
GET  /api/models                      : flat model list (enabled providers by default)
GET  /api/settings                    : enablement + masked keys
PUT  /api/settings/providers/{id}     : update enabled / apiKey
PUT  /api/settings/defaults           : update defaultProvider / defaultModel

API keys are never returned; only whether one is set and its last four characters.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from promptchain.api.deps import get_registry, get_settings_store
from promptchain.providers.registry import ProviderRegistry
from promptchain.schemas.providers import (
    CatalogModelOut,
    DefaultsUpdate,
    ModelOut,
    ProviderOut,
    ProviderSettingsOut,
    ProviderSettingsUpdate,
    SettingsOut,
)
from promptchain.services.settings_store import AppSettings, SettingsStore

logger = logging.getLogger("promptchain.api.providers")
router = APIRouter()


def _settings_out(store: SettingsStore, current: AppSettings) -> SettingsOut:
    providers: dict[str, ProviderSettingsOut] = {}
    for pid, entry in current.providers.items():
        key = entry.api_key or store.credential_for(pid) or ""
        providers[pid] = ProviderSettingsOut(
            enabled=entry.enabled,
            has_api_key=bool(key),
            api_key_hint=key[-4:] if len(key) >= 8 else None,
        )
    return SettingsOut(
        providers=providers,
        default_provider=current.default_provider,
        default_model=current.default_model,
        any_provider_configured=store.is_any_provider_configured(),
    )


@router.get("/providers", response_model=list[ProviderOut])
async def list_providers(registry: ProviderRegistry = Depends(get_registry)):
    return [
        ProviderOut(
            id=d.id,
            name=d.name,
            description=d.description,
            url=d.url,
            models=[ModelOut(id=m.id, name=m.name) for m in d.models],
            model_identifiers=list(d.model_identifiers),
            default_model=d.default_model,
        )
        for d in registry.descriptors()
    ]


@router.get("/models", response_model=list[CatalogModelOut])
async def list_models(
    enabled_only: bool = True,
    registry: ProviderRegistry = Depends(get_registry),
    store: SettingsStore = Depends(get_settings_store),
):
    return registry.all_models(enabled_only=enabled_only, settings=store.get())


@router.get("/settings", response_model=SettingsOut)
async def read_settings(store: SettingsStore = Depends(get_settings_store)):
    return _settings_out(store, store.get())


@router.put("/settings/providers/{provider_id}", response_model=SettingsOut)
async def update_provider_settings(
    provider_id: str,
    body: ProviderSettingsUpdate,
    registry: ProviderRegistry = Depends(get_registry),
    store: SettingsStore = Depends(get_settings_store),
):
    if provider_id not in registry:
        raise HTTPException(status_code=404, detail=f"Unknown provider '{provider_id}'")
    try:
        updated = store.update_provider(provider_id, enabled=body.enabled, api_key=body.api_key)
    except OSError as exc:
        raise HTTPException(status_code=500, detail="Settings could not be saved") from exc
    return _settings_out(store, updated)


@router.put("/settings/defaults", response_model=SettingsOut)
async def update_defaults(
    body: DefaultsUpdate,
    registry: ProviderRegistry = Depends(get_registry),
    store: SettingsStore = Depends(get_settings_store),
):
    if body.default_provider is not None and body.default_provider not in registry:
        raise HTTPException(status_code=404, detail=f"Unknown provider '{body.default_provider}'")
    try:
        updated = store.update_defaults(
            default_provider=body.default_provider, default_model=body.default_model
        )
    except OSError as exc:
        raise HTTPException(status_code=500, detail="Settings could not be saved") from exc
    return _settings_out(store, updated)
