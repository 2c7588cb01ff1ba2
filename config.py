"""Application configuration using pydantic-settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Discord
    discord_token: str = Field(default="", alias="DISCORD_TOKEN")

    # Database
    database_path: str = Field(default="quizbattle.db", alias="DATABASE_PATH")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Question generation
    groq_api_key: str = Field(default="", alias="GROQ_API_KEY")
    groq_model: str = Field(default="llama-3.3-70b-versatile", alias="GROQ_MODEL")
    generation_temperature: float = Field(default=0.4, alias="GENERATION_TEMPERATURE")
    generation_max_tokens: int = Field(default=2200, alias="GENERATION_MAX_TOKENS")

    # Battle settings
    default_question_count: int = Field(default=10, alias="DEFAULT_QUESTION_COUNT")
    min_question_count: int = Field(default=5, alias="MIN_QUESTION_COUNT")
    max_question_count: int = Field(default=20, alias="MAX_QUESTION_COUNT")
    battle_history_limit: int = Field(default=100, alias="BATTLE_HISTORY_LIMIT")

    # Join codes
    code_length: int = Field(default=6, alias="CODE_LENGTH")
    code_max_retries: int = Field(default=5, alias="CODE_MAX_RETRIES")

    # Scoring
    points_per_correct: int = Field(default=10, alias="POINTS_PER_CORRECT")


# Global settings instance
settings = Settings()


# Backwards compatibility - expose as Config class with uppercase attributes
class Config:
    """Backwards-compatible config interface."""

    DISCORD_TOKEN = settings.discord_token
    DATABASE_PATH = settings.database_path
    LOG_LEVEL = settings.log_level.upper()
    GROQ_API_KEY = settings.groq_api_key
    GROQ_MODEL = settings.groq_model
    GENERATION_TEMPERATURE = settings.generation_temperature
    GENERATION_MAX_TOKENS = settings.generation_max_tokens
    DEFAULT_QUESTION_COUNT = settings.default_question_count
    MIN_QUESTION_COUNT = settings.min_question_count
    MAX_QUESTION_COUNT = settings.max_question_count
    BATTLE_HISTORY_LIMIT = settings.battle_history_limit
    CODE_LENGTH = settings.code_length
    CODE_MAX_RETRIES = settings.code_max_retries
    POINTS_PER_CORRECT = settings.points_per_correct
