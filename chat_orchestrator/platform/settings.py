"""Application settings and configuration.

This module provides Pydantic settings classes for application configuration,
loaded from environment variables with support for nested configuration.
"""

import logging

import pydantic_settings
from pydantic import BaseModel, Field, SecretStr, field_validator


class AppHTTPSettings(BaseModel):
    host: str = Field("0.0.0.0")
    port: int = Field(8000)
    log_level: str = Field("INFO")
    log_json: bool | None = Field(
        None, description="Override log format: True=JSON, False=console, None=auto"
    )

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v):
        v_upper = v.upper()
        if v_upper not in logging._nameToLevel:
            raise ValueError(f'invalid value "{v}"')
        return v_upper


class OpenTelemetrySettings(BaseModel):
    host: str = Field("")
    port: int = Field(4317)
    enabled: bool = Field(False)
    excluded_urls: str = Field("metrics,health,info")


class BugsnagSettings(BaseModel):
    api_key: str = Field("")
    release_stage: str = Field("local")

    @field_validator("release_stage")
    @classmethod
    def _validate_bugsnag_release_stage(cls, v):
        if v not in ["development", "production", "local"]:
            raise ValueError(f'invalid bugsnag release stage "{v}"')
        return v


class ProviderCredentialSettings(BaseModel):
    """Credential and endpoint for one LLM provider.

    Attributes:
        api_key: Provider API key; the provider cannot be constructed without it
        api_base: Optional custom endpoint (OpenAI-compatible gateways, proxies)
    """

    api_key: SecretStr | None = None
    api_base: str | None = None

    @property
    def has_credential(self) -> bool:
        return self.api_key is not None and bool(self.api_key.get_secret_value())


class ProvidersSettings(BaseModel):
    """Per-provider credentials.

    Example: PROVIDERS__OPENAI__API_KEY=sk-... PROVIDERS__OPENAI__API_BASE=http://gateway/v1

    Ollama needs no key; PROVIDERS__OLLAMA__API_BASE overrides http://localhost:11434.
    """

    openai: ProviderCredentialSettings = ProviderCredentialSettings()
    anthropic: ProviderCredentialSettings = ProviderCredentialSettings()
    deepseek: ProviderCredentialSettings = ProviderCredentialSettings()
    openrouter: ProviderCredentialSettings = ProviderCredentialSettings()
    ollama: ProviderCredentialSettings = ProviderCredentialSettings()


class AgentCacheSettings(BaseModel):
    capacity: int = Field(32, ge=1)


class OrchestrationSettings(BaseModel):
    """Orchestration loop tuning.

    Attributes:
        max_provider_attempts: Attempts per provider call, including the first
        backoff_initial: First retry delay in seconds
        backoff_max: Upper bound for a single retry delay in seconds
        tool_failure_budget: Failed tool calls tolerated per run
        compaction_keep_recent: Messages kept verbatim when compacting
        summary_max_length: Upper bound for the compaction summary in characters
        confirmation_timeout: Seconds a run waits for a tool confirmation before rejecting the calls
    """

    max_provider_attempts: int = Field(3, ge=1)
    backoff_initial: float = Field(0.5, ge=0)
    backoff_max: float = Field(8.0, ge=0)
    tool_failure_budget: int = Field(3, ge=0)
    compaction_keep_recent: int = Field(6, ge=1)
    summary_max_length: int = Field(2000, ge=100)
    confirmation_timeout: float = Field(300.0, gt=0)


class MCPServerSettings(BaseModel):
    """Configuration for a single MCP server.

    Attributes:
        url: URL of the MCP server endpoint
        prefix: Optional prefix for tool names to avoid collisions
        timeout: Connection timeout in seconds
        sse_read_timeout: SSE stream read timeout in seconds
        read_timeout: General read timeout in seconds
    """

    url: str
    prefix: str | None = None
    timeout: float = 60.0
    sse_read_timeout: float = 300.0
    read_timeout: float = 120.0


class Settings(pydantic_settings.BaseSettings):
    model_config = pydantic_settings.SettingsConfigDict(env_nested_delimiter="__")

    app_http: AppHTTPSettings = AppHTTPSettings()
    opentelemetry: OpenTelemetrySettings = OpenTelemetrySettings()
    bugsnag: BugsnagSettings = BugsnagSettings()

    # LLM provider credentials
    providers: ProvidersSettings = ProvidersSettings()

    agent_cache: AgentCacheSettings = AgentCacheSettings()
    orchestration: OrchestrationSettings = OrchestrationSettings()

    # Extension tool servers, e.g. MCP_SERVERS='[{"url":"http://tools:8000/mcp","prefix":"crm"}]'
    mcp_servers: list[MCPServerSettings] = []

    # Used when a chat request names no model
    default_model: str = Field("mock/echo")
