"""Pydantic models for the provider catalog and provider settings."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ModelOut(BaseModel):
    id: str
    name: str


class ProviderOut(BaseModel):
    id: str
    name: str
    description: str = ""
    url: str = ""
    models: list[ModelOut]
    model_identifiers: list[str]
    default_model: str


class CatalogModelOut(BaseModel):
    provider_id: str
    provider_name: str
    id: str
    name: str


class ProviderSettingsOut(BaseModel):
    enabled: bool
    has_api_key: bool
    api_key_hint: str | None = None  # last four characters only


class SettingsOut(BaseModel):
    providers: dict[str, ProviderSettingsOut]
    default_provider: str
    default_model: str
    any_provider_configured: bool


class ProviderSettingsUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool | None = None
    api_key: str | None = Field(default=None, alias="apiKey")


class DefaultsUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    default_provider: str | None = Field(default=None, alias="defaultProvider")
    default_model: str | None = Field(default=None, alias="defaultModel")
