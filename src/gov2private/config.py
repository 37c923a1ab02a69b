from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "gov2private"
    app_env: str = "development"
    app_host: str = "127.0.0.1"
    app_port: int = 8787
    log_level: str = "INFO"

    database_url: str = "sqlite:///./data/gov2private.db"
    data_dir: Path = Path("./data")

    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    openai_timeout_sec: int = 60

    local_llm_enabled: bool = False
    local_llm_base_url: str = "http://localhost:11434/v1"
    local_llm_api_key: str = "local"
    local_llm_model: str = "llama3.1:8b-instruct"
    local_llm_timeout_sec: int = 90

    llm_provider_order: str = "openai,local"
    llm_max_tokens: int = 1200
    llm_temperature: float = 0.0

    run_history_max: int = 20
    chat_window: int = 12
    bullets_history_max: int = 3

    intent_confidence_min: float = 0.5
    fuzzy_match_high: float = 0.85
    fuzzy_match_floor: float = 0.55
    fuzzy_match_max: int = 3

    default_user_id: str = "anonymous"
    cors_origins: str = "http://127.0.0.1:8787"

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, value: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if value not in allowed:
            raise ValueError(f"app_env must be one of {sorted(allowed)}")
        return value

    @field_validator("fuzzy_match_high", "fuzzy_match_floor", "intent_confidence_min")
    @classmethod
    def validate_ratio(cls, value: float) -> float:
        if value < 0 or value > 1:
            raise ValueError("thresholds must be between 0 and 1")
        return value

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def provider_order(self) -> list[str]:
        return [name.strip() for name in self.llm_provider_order.split(",") if name.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
