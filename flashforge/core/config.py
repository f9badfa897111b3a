from typing import Optional
from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    name: str = Field(default="flashforge", alias="APP_NAME")
    version: str = Field(default="api", alias="API_VERSION")
    port: int = Field(default=8080, alias="APP_PORT")
    mode: str = Field(default="prod", alias="MODE")
    trust_proxy: bool = Field(default=True, alias="TRUST_PROXY")
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")
    ping_message: str = Field(default="ping", alias="PING_MESSAGE")

    @computed_field
    def is_production(self) -> bool:
        return self.mode != "dev"

    @computed_field
    def origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


class RateLimitSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    max_requests: int = Field(default=20, alias="MAX_REQUESTS_PER_MINUTE")
    window_seconds: int = Field(default=60, alias="RATE_LIMIT_WINDOW_SECONDS")


class RetrySettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    max_retries: int = Field(default=3, alias="RETRY_MAX_RETRIES")
    initial_delay_ms: int = Field(default=1000, alias="RETRY_INITIAL_DELAY_MS")
    max_delay_ms: int = Field(default=10000, alias="RETRY_MAX_DELAY_MS")
    backoff_multiplier: float = Field(default=2.0, alias="RETRY_BACKOFF_MULTIPLIER")


class LLMSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # Model provider selection: "groq", "google" or "openrouter"
    model_provider: str = Field(default="groq", alias="MODEL_PROVIDER")

    groq_api_key: Optional[str] = Field(default=None, alias="GROQ_API_KEY")
    gemini_api_key: Optional[str] = Field(default=None, alias="GEMINI_API_KEY")
    openrouter_api_key: Optional[str] = Field(default=None, alias="OPENROUTER_API_KEY")

    groq_model: str = Field(default="llama-3.1-70b-versatile", alias="GROQ_MODEL")
    gemini_model: str = Field(default="gemini-2.0-flash", alias="GEMINI_MODEL")
    openrouter_model: str = Field(
        default="x-ai/grok-code-fast-1", alias="OPENROUTER_MODEL"
    )

    temperature: float = Field(default=0.7, alias="LLM_TEMPERATURE")
    max_tokens: int = Field(default=2048, alias="LLM_MAX_TOKENS")

    @computed_field
    def model_name(self) -> str:
        provider = (self.model_provider or "groq").lower()
        if provider == "google":
            return self.gemini_model
        if provider == "openrouter":
            return self.openrouter_model
        return self.groq_model


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    app: AppSettings = Field(default_factory=lambda: AppSettings())
    rate_limit: RateLimitSettings = Field(default_factory=lambda: RateLimitSettings())
    retry: RetrySettings = Field(default_factory=lambda: RetrySettings())
    llm: LLMSettings = Field(default_factory=lambda: LLMSettings())

    # When disabled, classified LLM errors reach the HTTP caller and only the
    # client tier falls back to templates.
    server_fallback_enabled: bool = Field(default=True, alias="SERVER_FALLBACK_ENABLED")


settings = Settings()
