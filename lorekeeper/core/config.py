"""Application configuration using pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # OpenAI
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"

    # Neo4j
    neo4j_uri: str = "bolt://localhost:7687"
    neo4j_user: str = "neo4j"
    neo4j_password: str = "testpassword"

    # Extraction quota defaults (per user)
    quota_daily_limit: int = 10
    quota_weekly_limit: int = 30
    quota_monthly_limit: int = 100

    # Limit-increase contact payload
    contact_url: str = "/contact"
    contact_subject: str = "Entity Extraction Limit Increase Request"
    contact_message: str = (
        "You have reached your entity extraction limit. "
        "Contact us to request a higher limit."
    )

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    debug: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
