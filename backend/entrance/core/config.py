"""
Application configuration settings.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Dict, List, Self

from entrance.core.adaptive.sections import DEFAULT_SECTION_WEIGHTS, SECTION_ORDER


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Entrance Test API"
    APP_VERSION: str = "0.1.0"
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # API
    API_V1_PREFIX: str = "/v1"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
    ]

    # Database
    DATABASE_URL: str = "postgresql://localhost:5432/entrance_dev"

    # Security
    # JWT_SECRET_KEY MUST be set in the environment - no default
    JWT_SECRET_KEY: str = Field(..., description="JWT signing secret key (required)")
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 120

    # Admin endpoints (assign / cancel / review)
    ADMIN_TOKEN: str = Field(
        default="",
        description="Admin API token for test assignment endpoints",
    )

    # Entrance tests
    DEFAULT_TIME_LIMIT_SECONDS: int = Field(
        default=3000,
        gt=0,
        description="Time budget applied when a test is assigned without one",
    )
    # Keys must match the section keys in entrance.core.adaptive.sections.
    # Overridden at runtime by the system_config "section_weights" entry.
    SECTION_WEIGHTS: Dict[str, float] = dict(DEFAULT_SECTION_WEIGHTS)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_section_weights(self) -> Self:
        """Reject weights for unknown sections or negative weights."""
        unknown = set(self.SECTION_WEIGHTS) - set(SECTION_ORDER)
        if unknown:
            raise ValueError(
                f"SECTION_WEIGHTS contains unknown sections: {sorted(unknown)}"
            )
        negative = [k for k, v in self.SECTION_WEIGHTS.items() if v < 0]
        if negative:
            raise ValueError(
                f"SECTION_WEIGHTS must be non-negative (got negative for {negative})"
            )
        return self


settings = Settings()
