from __future__ import annotations

import logging
from typing import Any

from gov2private.config import Settings, get_settings
from gov2private.core.errors import ConfigurationError, ModelCallError
from gov2private.llm.providers import ProviderPool

logger = logging.getLogger(__name__)


class ModelGateway:
    """Thin wrapper over the configured model providers.

    Tries providers in ``llm_provider_order`` and returns the first reply's
    text. Raises ``ModelCallError`` when every usable provider fails and
    ``ConfigurationError`` when none is usable at all.
    """

    def __init__(self, settings: Settings | None = None, pool: ProviderPool | None = None):
        self.settings = settings or get_settings()
        self.pool = pool or ProviderPool(self.settings)

    def available_providers(self) -> list[str]:
        return [name for name in self.settings.provider_order if self.pool.is_enabled(name)]

    def ensure_available(self) -> None:
        if not self.available_providers():
            raise ConfigurationError(
                "no model provider configured; set OPENAI_API_KEY or LOCAL_LLM_ENABLED=true"
            )

    def generate(
        self,
        messages: list[dict[str, str]],
        *,
        schema: dict[str, Any] | None = None,
        max_tokens: int | None = None,
    ) -> str:
        providers = self.available_providers()
        if not providers:
            raise ConfigurationError("no model provider configured")

        last_error: Exception | None = None
        for name in providers:
            provider = self.pool.get(name)
            try:
                response = provider.complete(
                    messages=messages,
                    schema=schema,
                    temperature=self.settings.llm_temperature,
                    max_tokens=max_tokens or self.settings.llm_max_tokens,
                )
                return response.content
            except Exception as exc:
                last_error = exc
                logger.warning("LLM call failed provider=%s error=%s", name, exc)

        raise ModelCallError(f"all model providers failed: {last_error}")
