from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ==========================================================================
    # ENVIRONMENT
    # ==========================================================================
    environment: str = "dev"  # "dev", "prod"
    debug: bool = True

    # ==========================================================================
    # OPENAI (preferred provider)
    # ==========================================================================
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"

    # ==========================================================================
    # ANTHROPIC (fallback provider)
    # ==========================================================================
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3-haiku-20240307"

    # ==========================================================================
    # SHARED LLM PARAMETERS
    # ==========================================================================
    llm_max_tokens: int = 4000
    llm_temperature: float = 0.0
    llm_timeout_seconds: float = 60.0

    # ==========================================================================
    # RATE LIMITING (outbound model calls)
    # ==========================================================================
    llm_rate_limit_requests: int = 80  # Max model calls per window
    llm_rate_limit_window: int = 60  # Window in seconds

    # ==========================================================================
    # RETRY
    # ==========================================================================
    llm_max_retries: int = 3  # Retries on quota/throttle errors
    llm_retry_max_delay: float = 30.0  # Cap on the 2^attempt backoff
    stage_parse_retries: int = 2  # Extra attempts when a stage's output won't parse

    # ==========================================================================
    # CHUNKING
    # ==========================================================================
    chunk_size: int = 3500  # Characters; longer inputs are chunked
    chunk_overlap: int = 250

    # ==========================================================================
    # SUGGESTIONS
    # ==========================================================================
    min_suggestions: int = 5
    max_suggestions: int = 12

    # ==========================================================================
    # ERROR REPORTING
    # ==========================================================================
    error_payload_max_chars: int = 500  # Raw model output excerpt size

    # ==========================================================================
    # CORS
    # ==========================================================================
    cors_origins: str = "*"  # Comma-separated origins, or "*" for all

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "prod"

    @property
    def cors_origins_list(self) -> list:
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def has_llm_credentials(self) -> bool:
        return bool(self.openai_api_key or self.anthropic_api_key)


settings = Settings()
