from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from openai import OpenAI

from gov2private.config import Settings
from gov2private.types import ModelResponse

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProviderConfig:
    name: str
    base_url: str
    api_key: str
    model: str
    timeout_sec: int


class LLMProvider:
    def __init__(self, config: ProviderConfig):
        self.config = config
        self.client = OpenAI(
            base_url=config.base_url,
            api_key=config.api_key,
            timeout=float(config.timeout_sec),
        )

    def complete(
        self,
        *,
        messages: list[dict[str, str]],
        schema: dict[str, Any] | None = None,
        temperature: float = 0.0,
        max_tokens: int = 1200,
    ) -> ModelResponse:
        try:
            return self._complete_via_responses(
                messages=messages,
                schema=schema,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except Exception as exc:
            if not self._is_unsupported_responses_endpoint(exc):
                raise

            logger.warning(
                "Responses API unavailable for provider=%s base_url=%s; "
                "falling back to chat.completions (%s)",
                self.config.name,
                self.config.base_url,
                exc,
            )
            return self._complete_via_chat_completions(
                messages=messages,
                schema=schema,
                temperature=temperature,
                max_tokens=max_tokens,
            )

    def _complete_via_responses(
        self,
        *,
        messages: list[dict[str, str]],
        schema: dict[str, Any] | None,
        temperature: float,
        max_tokens: int,
    ) -> ModelResponse:
        kwargs: dict[str, Any] = {
            "model": self.config.model,
            "input": [{"role": m["role"], "content": m["content"]} for m in messages],
            "temperature": temperature,
            "max_output_tokens": max_tokens,
        }
        if schema is not None:
            kwargs["text"] = {
                "format": {
                    "type": "json_schema",
                    "name": schema["name"],
                    "schema": schema["schema"],
                    "strict": False,
                }
            }
        response = self.client.responses.create(**kwargs)
        text = getattr(response, "output_text", "") or ""
        raw = response.model_dump() if hasattr(response, "model_dump") else {}
        if not isinstance(raw, dict):
            raw = {"raw": raw}
        raw["api_path"] = "responses"
        return ModelResponse(content=text, raw=raw)

    def _complete_via_chat_completions(
        self,
        *,
        messages: list[dict[str, str]],
        schema: dict[str, Any] | None,
        temperature: float,
        max_tokens: int,
    ) -> ModelResponse:
        kwargs: dict[str, Any] = {
            "model": self.config.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if schema is not None:
            kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": schema["name"], "schema": schema["schema"], "strict": False},
            }
        response = self.client.chat.completions.create(**kwargs)

        text = self._extract_chat_text(response)
        raw = response.model_dump() if hasattr(response, "model_dump") else {}
        if not isinstance(raw, dict):
            raw = {"raw": raw}
        raw["api_path"] = "chat_completions"
        return ModelResponse(content=text, raw=raw)

    @staticmethod
    def _extract_chat_text(response: Any) -> str:
        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""

        message = getattr(choices[0], "message", None)
        if message is None:
            return ""

        content = getattr(message, "content", "")
        if isinstance(content, str):
            return content
        if content is None:
            return ""
        return str(content)

    @staticmethod
    def _is_unsupported_responses_endpoint(exc: Exception) -> bool:
        status_code = getattr(exc, "status_code", None)
        if status_code == 404:
            return True

        message = str(exc).strip().lower()
        if not message:
            return False

        return "not found" in message or "404" in message


class ProviderPool:
    def __init__(self, settings: Settings):
        self.settings = settings
        self._providers: dict[str, LLMProvider] = {}

    def is_enabled(self, name: str) -> bool:
        if name == "openai":
            return bool(self.settings.openai_api_key)
        if name == "local":
            return self.settings.local_llm_enabled
        return False

    def get(self, name: str) -> LLMProvider:
        if name not in self._providers:
            self._providers[name] = LLMProvider(self._config_for(name))
        return self._providers[name]

    def _config_for(self, name: str) -> ProviderConfig:
        if name == "openai":
            return ProviderConfig(
                name="openai",
                base_url=self.settings.openai_base_url,
                api_key=self.settings.openai_api_key,
                model=self.settings.openai_model,
                timeout_sec=self.settings.openai_timeout_sec,
            )
        if name == "local":
            return ProviderConfig(
                name="local",
                base_url=self.settings.local_llm_base_url,
                api_key=self.settings.local_llm_api_key,
                model=self.settings.local_llm_model,
                timeout_sec=self.settings.local_llm_timeout_sec,
            )
        raise ValueError(f"unknown provider '{name}'")
