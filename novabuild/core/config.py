# novabuild/core/config.py
"""
Application configuration - single source of truth for all settings.
"""
import os
from dataclasses import dataclass, field
from typing import FrozenSet, Optional
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class LLMSettings:
    """Oracle provider configuration."""
    default_provider: str = field(default_factory=lambda: os.getenv("DEFAULT_LLM_PROVIDER", "gemini"))
    # Routing, planning and chat use the fast model; code, SQL and repair use the builder model
    fast_model: str = field(default_factory=lambda: os.getenv("FAST_LLM_MODEL", "gemini-flash-lite-latest"))
    builder_model: str = field(default_factory=lambda: os.getenv("BUILDER_LLM_MODEL", "gemini-2.5-pro"))
    gemini_api_key: Optional[str] = field(default_factory=lambda: os.getenv("GEMINI_API_KEY"))
    openai_api_key: Optional[str] = field(default_factory=lambda: os.getenv("OPENAI_API_KEY"))
    http_timeout: int = field(default_factory=lambda: int(os.getenv("LLM_HTTP_TIMEOUT", "120")))
    max_tokens: int = 16000


@dataclass
class BuildSettings:
    """Build orchestration configuration."""
    call_retries: int = 2
    call_initial_delay: float = 1.0
    call_timeout: float = field(default_factory=lambda: float(os.getenv("ORACLE_CALL_TIMEOUT", "120")))
    code_step_attempts: int = 3
    # Envelope retries inside one code-step attempt
    code_call_retries: int = 1
    router_temperature: float = 0.0
    chat_temperature: float = 0.7
    repair_temperature: float = 0.2
    router_history_window: int = 4
    chat_history_window: int = 5
    min_plan_steps: int = 4
    max_plan_steps: int = 8
    # Matched as substrings of untagged step descriptions
    sql_keywords: FrozenSet[str] = frozenset({"sql", "database", "table", "schema"})
    # Ambiguous backend classification falls back to this value
    assume_backend_when_ambiguous: bool = field(
        default_factory=lambda: _env_bool("ASSUME_BACKEND_WHEN_AMBIGUOUS", "true")
    )


@dataclass
class ProvisioningSettings:
    """Managed backend provisioning service."""
    base_url: str = field(default_factory=lambda: os.getenv("PROVISIONING_URL", "http://localhost:8787"))
    api_token: Optional[str] = field(default_factory=lambda: os.getenv("PROVISIONING_TOKEN"))
    default_region: str = field(default_factory=lambda: os.getenv("PROVISIONING_REGION", "us-east-1"))
    poll_interval: float = 5.0
    max_polls: int = 60
    request_timeout: int = 30


@dataclass
class StoreSettings:
    """Durable project store."""
    backend: str = field(default_factory=lambda: os.getenv("PROJECT_STORE", "mongo"))
    mongodb_url: str = field(default_factory=lambda: os.getenv("MONGODB_URL", "mongodb://localhost:27017"))
    database_name: str = field(default_factory=lambda: os.getenv("MONGODB_DB", "novabuild"))


@dataclass
class Settings:
    """Main application settings."""
    llm: LLMSettings = field(default_factory=LLMSettings)
    build: BuildSettings = field(default_factory=BuildSettings)
    provisioning: ProvisioningSettings = field(default_factory=ProvisioningSettings)
    store: StoreSettings = field(default_factory=StoreSettings)
    port: int = field(default_factory=lambda: int(os.getenv("PORT", 8000)))
    debug: bool = field(default_factory=lambda: _env_bool("DEBUG"))
    cors_origins: str = field(default_factory=lambda: os.getenv("CORS_ORIGINS", "*"))
    rate_limit: str = field(default_factory=lambda: os.getenv("RATE_LIMIT", "100/minute"))


# Singleton instance
settings = Settings()
