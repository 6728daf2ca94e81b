"""
Configuration module - loads all env vars using pydantic-settings.
This is the SINGLE SOURCE OF TRUTH for all config values.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # MongoDB
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "placement_platform"

    # JWT Auth
    jwt_secret_key: str = "change-this-secret"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 7

    # Admin signup is open when empty
    admin_signup_code: str = ""

    # GitHub
    github_api_url: str = "https://api.github.com"
    # 64 hex chars (32 bytes), used for A256GCM token encryption
    github_token_encryption_key: str = ""
    github_timeout_seconds: int = 15

    # LeetCode
    leetcode_graphql_url: str = "https://leetcode.com/graphql"

    # Adzuna job market API
    adzuna_app_id: str = ""
    adzuna_api_key: str = ""
    adzuna_country: str = "in"

    # LLM (OpenAI-compatible, Groq by default)
    llm_api_key: str = ""
    llm_base_url: str = "https://api.groq.com/openai/v1"
    llm_model: str = "llama-3.3-70b-versatile"

    # Matching
    min_skill_match_percentage: int = 10

    # Market refresh cron
    market_refresh_enabled: bool = True
    market_refresh_hour: int = 2
    market_refresh_minute: int = 0
    market_refresh_timezone: str = "Asia/Kolkata"

    # App
    environment: str = "development"
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    # Pydantic v2 config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
