"""Application settings and configuration."""

from typing import Literal

from pydantic import Field, field_validator, model_validator  # type: ignore
from pydantic_settings import BaseSettings, SettingsConfigDict  # type: ignore


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    ENV: Literal["dev", "staging", "prod", "test"] = Field(default="dev")
    PROJECT_NAME: str = Field(default="Certification Quiz API")

    # API
    API_PREFIX: str = Field(default="/v1")

    # Database
    DATABASE_URL: str = Field(default="sqlite:///./quiz.db")

    # CORS - Accept string or list, will be normalized to list
    CORS_ORIGINS: str | list[str] = Field(default="http://localhost:3000")

    # Logging
    LOG_LEVEL: str = Field(default="INFO")

    # Quiz defaults
    DEFAULT_PASS_PERCENTAGE: int = Field(default=70, ge=0, le=100)
    DEFAULT_QUESTIONS_PER_QUIZ: int = Field(default=10, ge=1)
    MAX_QUESTIONS_PER_QUIZ: int = Field(default=30, ge=1)

    # Scoring
    DEFAULT_CANONICAL_TOPIC: str = Field(default="Products")
    MERGE_CANONICAL_TOPICS: bool = Field(default=False)  # False = legacy per-raw-label buckets

    @model_validator(mode="before")
    @classmethod
    def parse_cors_origins(cls, data):
        """Parse CORS_ORIGINS from comma-separated string or list."""
        if isinstance(data, dict) and "CORS_ORIGINS" in data:
            cors_origins = data["CORS_ORIGINS"]
            if isinstance(cors_origins, str):
                data["CORS_ORIGINS"] = [
                    origin.strip() for origin in cors_origins.split(",") if origin.strip()
                ]
        return data

    @field_validator("DEFAULT_CANONICAL_TOPIC")
    @classmethod
    def validate_default_topic(cls, value: str) -> str:
        """The fallback topic must belong to the canonical taxonomy."""
        from app.scoring.topics import CANONICAL_TOPICS

        if value not in CANONICAL_TOPICS:
            raise ValueError(f"DEFAULT_CANONICAL_TOPIC must be one of {list(CANONICAL_TOPICS)}")
        return value

    def __init__(self, **kwargs):
        """Validate settings on initialization."""
        super().__init__(**kwargs)
        # Ensure CORS_ORIGINS is a list after initialization
        if isinstance(self.CORS_ORIGINS, str):
            object.__setattr__(
                self,
                "CORS_ORIGINS",
                [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()],
            )
        if self.DEFAULT_QUESTIONS_PER_QUIZ > self.MAX_QUESTIONS_PER_QUIZ:
            raise ValueError("DEFAULT_QUESTIONS_PER_QUIZ cannot exceed MAX_QUESTIONS_PER_QUIZ")
        # Fail fast in production if the database is still the local default
        if self.ENV == "prod" and self.DATABASE_URL.startswith("sqlite:///./"):
            raise ValueError("DATABASE_URL must be set in production")


# Global settings instance
settings = Settings()
