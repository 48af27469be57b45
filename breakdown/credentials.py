"""Credential lookup for the job service and the generation service."""

from __future__ import annotations

from typing import Protocol

from breakdown.config import Settings, settings

# Names under which the extension stores its two secrets
JOB_SERVICE_KEY = "sieveAPIKey"
GENERATION_KEY = "openAIKey"
ANTHROPIC_KEY = "anthropicAPIKey"


class CredentialSource(Protocol):
    """Async key/value lookup for API keys. Absence is reported as ``None``."""

    async def get(self, key: str) -> str | None: ...


class SettingsCredentialSource:
    """Serve credentials from :class:`~breakdown.config.Settings`."""

    def __init__(self, config: Settings | None = None) -> None:
        self._config = config or settings

    async def get(self, key: str) -> str | None:
        value = {
            JOB_SERVICE_KEY: self._config.sieve_api_key,
            GENERATION_KEY: self._config.openai_api_key,
            ANTHROPIC_KEY: self._config.anthropic_api_key,
        }.get(key, "")
        return value.strip() or None
