from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Optional
from dotenv import load_dotenv
import os

# Load environment variables so ENVIRONMENT is visible before Settings is built
load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )
    # Application
    app_name: str = "Feature Request Tracker"
    app_version: str = "1.0.0"
    debug: bool = Field(default=False, env="DEBUG")

    # Collection namespace (artifacts/{app_id}/...)
    app_id: str = Field(default="demo-app", env="APP_ID")

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./feature_requests.db", env="DATABASE_URL")
    database_echo: bool = Field(default=False, env="DATABASE_ECHO")

    # Authentication & Security
    secret_key: str = Field(default="change-me", env="SECRET_KEY")
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24
    allow_guest_access: bool = Field(default=True, env="ALLOW_GUEST_ACCESS")

    # AI & LLM Configuration
    llm_provider: str = Field(default="gemini", env="LLM_PROVIDER")  # gemini, ollama or openai
    llm_timeout: float = Field(default=30.0, env="LLM_TIMEOUT")  # seconds
    llm_temperature: float = Field(default=0.3, env="LLM_TEMPERATURE")
    max_tokens: int = Field(default=2000, env="MAX_TOKENS")

    # Gemini Configuration
    gemini_api_key: Optional[str] = Field(default=None, env="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-2.0-flash-exp", env="GEMINI_MODEL")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        env="GEMINI_BASE_URL"
    )

    # OpenAI-compatible Configuration (OpenAI, Groq, Together, ...)
    openai_api_key: str = Field(default="not-needed", env="OPENAI_API_KEY")
    openai_api_base: Optional[str] = Field(default=None, env="OPENAI_API_BASE")
    openai_model: str = Field(default="gpt-4o-mini", env="OPENAI_MODEL")

    # Ollama Configuration
    ollama_base_url: str = Field(default="http://localhost:11434", env="OLLAMA_BASE_URL")
    ollama_model: str = Field(default="llama3.2", env="OLLAMA_MODEL")

    # Enrichment
    enable_ai_analysis: bool = Field(default=True, env="ENABLE_AI_ANALYSIS")
    user_demand_factor: float = Field(default=1.0, ge=1.0, env="USER_DEMAND_FACTOR")
    product_fetch_timeout: float = Field(default=15.0, env="PRODUCT_FETCH_TIMEOUT")
    product_html_max_chars: int = Field(default=20000, env="PRODUCT_HTML_MAX_CHARS")

    # CORS
    allowed_origins: List[str] = Field(
        default=["http://localhost:5173", "http://localhost:3000"],
        env="ALLOWED_ORIGINS"
    )

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")


# Environment-specific configurations
class DevelopmentConfig(Settings):
    debug: bool = True
    log_level: str = "DEBUG"


class ProductionConfig(Settings):
    debug: bool = False
    database_echo: bool = False
    log_level: str = "WARNING"


class TestingConfig(Settings):
    database_url: str = "sqlite+aiosqlite:///./test.db"
    secret_key: str = "test-secret-key"
    gemini_api_key: Optional[str] = "test-gemini-key"
    enable_ai_analysis: bool = True


def get_settings() -> Settings:
    """Factory function to get settings based on environment"""
    env = os.getenv("ENVIRONMENT", "development").lower()

    if env == "production":
        return ProductionConfig()
    elif env == "testing":
        return TestingConfig()
    else:
        return DevelopmentConfig()
