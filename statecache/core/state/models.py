from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


ApiProvider = Literal["anthropic", "openai", "openrouter", "gemini", "ollama", "fake-ai"]


class ApiConfigMeta(BaseModel):
    model_config = ConfigDict(extra="allow")
    id: str
    name: str
    api_provider: Optional[ApiProvider] = None


class CustomMode(BaseModel):
    model_config = ConfigDict(extra="allow")
    slug: str = Field(min_length=1)
    name: str = Field(min_length=1)
    role_definition: str = ""
    custom_instructions: Optional[str] = None
    groups: List[str] = Field(default_factory=list)
    source: Literal["global", "project"] = "global"


class HistoryItem(BaseModel):
    model_config = ConfigDict(extra="allow")
    id: str
    ts: float
    task: str = ""
    tokens_in: int = 0
    tokens_out: int = 0
    total_cost: float = 0.0
    workspace: Optional[str] = None


class ProviderSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", protected_namespaces=())
    api_provider: Optional[ApiProvider] = None
    api_model_id: Optional[str] = None
    api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    openai_model_id: Optional[str] = None
    openai_api_key: Optional[str] = None
    openai_headers: Optional[Dict[str, str]] = None
    openrouter_api_key: Optional[str] = None
    anthropic_base_url: Optional[str] = None
    gemini_api_key: Optional[str] = None
    ollama_base_url: Optional[str] = None
    ollama_model_id: Optional[str] = None
    model_temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    model_max_tokens: Optional[int] = Field(default=None, ge=1)
    include_max_tokens: Optional[bool] = None

    @field_validator("openai_base_url", "anthropic_base_url", "ollama_base_url")
    @classmethod
    def _url_scheme(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not v.startswith(("http://", "https://")):
            raise ValueError("base url must start with http:// or https://")
        return v


class GlobalSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")
    current_api_config_name: Optional[str] = None
    list_api_config_meta: Optional[List[ApiConfigMeta]] = None
    task_history: Optional[List[HistoryItem]] = None
    custom_modes: Optional[List[CustomMode]] = None
    mode: Optional[str] = None
    language: Optional[str] = None
    custom_instructions: Optional[str] = None
    auto_approval_enabled: Optional[bool] = None
    always_allow_read_only: Optional[bool] = None
    always_allow_write: Optional[bool] = None
    allowed_commands: Optional[List[str]] = None
    request_delay_seconds: Optional[int] = Field(default=None, ge=0, le=600)
    enable_checkpoints: Optional[bool] = None
    telemetry_setting: Optional[Literal["unset", "enabled", "disabled"]] = None
    last_shown_announcement_id: Optional[str] = None


class GlobalSettingsExport(BaseModel):
    """GlobalSettings minus session-identifying and history fields."""

    model_config = ConfigDict(extra="forbid")
    custom_modes: Optional[List[CustomMode]] = None
    mode: Optional[str] = None
    language: Optional[str] = None
    custom_instructions: Optional[str] = None
    auto_approval_enabled: Optional[bool] = None
    always_allow_read_only: Optional[bool] = None
    always_allow_write: Optional[bool] = None
    allowed_commands: Optional[List[str]] = None
    request_delay_seconds: Optional[int] = Field(default=None, ge=0, le=600)
    enable_checkpoints: Optional[bool] = None
    telemetry_setting: Optional[Literal["unset", "enabled", "disabled"]] = None
    last_shown_announcement_id: Optional[str] = None


EXPORT_EXCLUDED_KEYS = ("current_api_config_name", "list_api_config_meta", "task_history")

