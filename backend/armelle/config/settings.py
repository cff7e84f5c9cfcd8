# /armelle/config/settings.py

import sys
from typing import List, Optional
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

# Share of the action timeout a DGI lookup may spend, retries included. The
# rest leaves the onboarding action time to answer with dgi_unavailable.
DGI_BUDGET_SHARE = 0.8


class Settings(BaseSettings):
    # App Metadata
    app_name: str = "Armelle"
    api_version: str = "v1"
    environment: str = "production"
    log_level: str = "INFO"
    api_key: str = ""

    # Redis (session store + profile store)
    redis_url: str = "redis://localhost:6379"
    use_in_memory_store: bool = False
    session_ttl_seconds: int = 60 * 60 * 24
    session_key_prefix: str = "bot_session:"
    profile_key_prefix: str = "bot_profile:"

    # Workflow engine
    workflow_history_limit: int = 50
    workflow_max_auto_steps: int = 25
    action_timeout_seconds: float = 10.0
    auto_start_workflow: str = "onboarding"

    # Localization (comma-separated, first entry wins when a language is unknown)
    default_language: str = "fr"
    supported_languages: str = "fr,en"

    # DGI taxpayer lookup service
    dgi_api_url: str = "http://localhost:8081"
    dgi_timeout_seconds: float = 8.0
    dgi_max_results: int = 10

    # ---------------- Validators ---------------- #

    @field_validator("workflow_history_limit", "workflow_max_auto_steps")
    @classmethod
    def must_be_positive(cls, v):
        if v < 1:
            raise ValueError("Workflow limits must be at least 1")
        return v

    @model_validator(mode="after")
    def normalize_languages(self):
        self.default_language = self.default_language.strip().lower()
        self.supported_languages = ",".join(self.language_list)
        return self

    @property
    def language_list(self) -> List[str]:
        return [lang.strip().lower() for lang in self.supported_languages.split(",") if lang.strip()]

    @property
    def dgi_budget_seconds(self) -> Optional[float]:
        """Ceiling for a whole DGI lookup, kept below the action timeout."""
        if not self.action_timeout_seconds:
            return None
        return self.action_timeout_seconds * DGI_BUDGET_SHARE

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


def validate_environment(settings_obj: Settings):
    try:
        if settings_obj.default_language not in settings_obj.language_list:
            raise ValueError(
                f"DEFAULT_LANGUAGE '{settings_obj.default_language}' is not in SUPPORTED_LANGUAGES"
            )

        if settings_obj.environment == "production" and settings_obj.use_in_memory_store:
            raise ValueError("USE_IN_MEMORY_STORE cannot be enabled in production")

        if settings_obj.action_timeout_seconds and settings_obj.dgi_timeout_seconds >= settings_obj.action_timeout_seconds:
            raise ValueError("DGI_TIMEOUT_SECONDS must be lower than ACTION_TIMEOUT_SECONDS")

        return settings_obj

    except Exception as e:
        print(f"--- [ERROR] Environment validation failed: {e}")
        sys.exit(1)


settings = Settings()
validate_environment(settings)
