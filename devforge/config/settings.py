import os
from pathlib import Path

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_database_url() -> str:
    """Get database URL, using absolute path for SQLite to avoid path resolution issues.

    SQLite is meant for local development only. Point DATABASE_URL at
    PostgreSQL for shared deployments.
    """
    db_url = os.getenv("DATABASE_URL", "")
    if db_url:
        logger.info(f"Using DATABASE_URL from environment: {db_url}")
        return db_url

    db_path = Path(__file__).parent.parent.parent / "devforge.db"
    abs_path = db_path.resolve()
    db_url = f"sqlite:///{abs_path}"
    logger.warning(f"Using SQLite database (LOCAL DEV ONLY): {db_url}")
    return db_url


class Settings(BaseSettings):
    database_url: str = Field(
        default_factory=get_database_url,
        validation_alias="DATABASE_URL",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str = Field(default="", validation_alias="LOG_FILE")
    mcp_host: str = Field(default="127.0.0.1", validation_alias="MCP_HOST")
    mcp_port: int = Field(default=8100, validation_alias="MCP_PORT")
    workflow_delay_scale: float = Field(
        default=1.0,
        validation_alias="WORKFLOW_DELAY_SCALE",
        description="Multiplier applied to simulated workflow node delays (0 disables them)",
    )
    workflow_test_failure_rate: float = Field(
        default=0.1,
        validation_alias="WORKFLOW_TEST_FAILURE_RATE",
        description="Probability (0.0-1.0) that a simulated test node fails",
    )
    cost_placeholder_score: float = Field(
        default=85.0,
        validation_alias="COST_PLACEHOLDER_SCORE",
        description="Fixed cost category score until real cost data is wired in",
    )
    compliance_placeholder_score: float = Field(
        default=90.0,
        validation_alias="COMPLIANCE_PLACEHOLDER_SCORE",
        description="Fixed compliance category score until compliance checks are wired in",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(valid_levels)}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("workflow_delay_scale")
    @classmethod
    def validate_delay_scale(cls, value: float) -> float:
        if value < 0:
            logger.warning(f"WORKFLOW_DELAY_SCALE must not be negative, got {value}. Using 0.")
            return 0.0
        return value

    @field_validator("workflow_test_failure_rate")
    @classmethod
    def validate_failure_rate(cls, value: float) -> float:
        """Clamp the simulated failure probability into [0, 1]."""
        if not 0.0 <= value <= 1.0:
            clamped = min(1.0, max(0.0, value))
            logger.warning(f"WORKFLOW_TEST_FAILURE_RATE must be within [0, 1], got {value}. Using {clamped}.")
            return clamped
        return value


settings = Settings()
