from pydantic_settings import BaseSettings
from functools import lru_cache

from .errors import ConfigurationError


class Settings(BaseSettings):
    # core
    ENV: str = "dev"
    API_PREFIX: str = "/api"

    # database & redis
    # plain strings; tests run against sqlite://
    DATABASE_URL: str
    REDIS_URL: str

    # llm
    OPENROUTER_API_KEY: str | None = None
    OPENAI_API_KEY: str | None = None
    LLM_MODEL: str = "anthropic/claude-3.5-sonnet"
    LLM_TEMPERATURE: float = 0.3
    LLM_MAX_TOKENS: int = 4000
    # Hard cap on concurrent LLM calls per process
    LLM_MAX_CONCURRENCY: int = 4

    # prospect discovery (Apollo.io)
    APOLLO_API_KEY: str | None = None
    APOLLO_BASE_URL: str = "https://api.apollo.io/api/v1"
    APOLLO_TIMEOUT_SECONDS: int = 30
    APOLLO_CONTACTS_PER_ENTITY: int = 3

    # campaign upload; empty URL means the upload phase runs dry
    CAMPAIGN_UPLOAD_URL: str | None = None
    CAMPAIGN_API_KEY: str | None = None
    CAMPAIGN_TIMEOUT_SECONDS: int = 30

    # report schema override (defaults to the packaged resource)
    REPORT_SCHEMA_PATH: str | None = None

    # auth / security
    API_AUTH_KEY: str | None = None
    FRONTEND_ORIGIN: str | None = None
    # Explicit debug-only switch for wide-open CORS in non-prod envs
    CORS_ALLOW_ALL_ORIGINS: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True

    def require_llm_credentials(self) -> None:
        if not (self.OPENROUTER_API_KEY or self.OPENAI_API_KEY):
            raise ConfigurationError(
                "No LLM API key configured. Set either OPENAI_API_KEY or OPENROUTER_API_KEY."
            )

    def require_pipeline_credentials(self) -> None:
        """
        The pipeline needs the reasoning service for profile generation and
        personalization, and Apollo for entity/contact discovery. Campaign
        upload credentials are optional (dry run without them).
        """
        self.require_llm_credentials()
        if not self.APOLLO_API_KEY:
            raise ConfigurationError(
                "APOLLO_API_KEY must be set to run prospecting pipelines."
            )


@lru_cache
def get_settings() -> Settings:
    return Settings()
