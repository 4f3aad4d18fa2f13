from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    PORT: int = 8000
    BUILD_TAG: str = "DAILY-QUOTES-V1"
    ALLOWED_ORIGINS: str = ""

    # Supabase (REST) - service role key has two names in the wild
    SUPABASE_URL: str | None = None
    SUPABASE_SERVICE_KEY: str | None = Field(
        default=None,
        validation_alias=AliasChoices("SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_SERVICE_KEY"),
    )
    QUOTES_TABLE: str = "daily_quotes"

    # Generation service (Anthropic)
    GENERATION_SERVICE_KEY: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GENERATION_SERVICE_KEY", "ANTHROPIC_API_KEY"),
    )
    CLAUDE_MODEL: str = "claude-3-haiku-20240307"
    GENERATION_MAX_TOKENS_PER_ITEM: int = 250
    GENERATION_TEMPERATURE: float = 0.7

    # Trigger secrets
    CRON_SECRET: str | None = None
    TEST_SECRET: str | None = None

    # Pipeline tuning
    DAILY_QUOTES_TOTAL: int = 30
    DAILY_QUOTES_BATCH_SIZE: int = 5
    GENERATION_MAX_RETRIES: int = 3
    GENERATION_INITIAL_DELAY_MS: int = 1000
    INTER_BATCH_DELAY_MS: int = 500
    GENERATION_TIMEOUT_MS: int = 30_000
    DB_TIMEOUT_MS: int = 10_000
    INSERT_CHUNK_SIZE: int = 10
    DEFAULT_LANGUAGE: str = "en"

    # In-process scheduler (off by default, an external cron usually hits the endpoint)
    DAILY_QUOTES_SCHEDULER_ENABLED: bool = False
    DAILY_QUOTES_CRON_HOUR: int = 0
    DAILY_QUOTES_CRON_MINUTE: int = 0


def get_settings() -> Settings:
    """Fresh settings from the current environment (read once per run)."""
    return Settings()


settings = Settings()
