from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Admin access
    admin_password: str = ""
    secret_key: str = "dev-secret-key-change-in-production"
    admin_session_max_age_seconds: int = 8 * 60 * 60

    # LLM API settings
    llm_provider: str = "openrouter"  # or 'anthropic'
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    anthropic_api_key: str = ""
    llm_model: str = "google/gemini-2.5-flash-preview-09-2025"
    llm_temperature: float = 0.1
    llm_max_tokens: int = 4096
    llm_timeout_seconds: float = 120.0
    min_diagnoses: int = 1
    max_diagnoses: int = 5

    # Application settings
    database_path: str = "./ddx_survey.db"

    # Server settings
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: List[str] = ["*"]  # JSON list in the environment

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False
    )

    def api_key_for(self, provider: str) -> str:
        """Get the configured API key for a provider"""
        if provider == "anthropic":
            return self.anthropic_api_key
        return self.openrouter_api_key


settings = Settings()
