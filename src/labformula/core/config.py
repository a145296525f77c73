"""
Engine configuration management using Pydantic Settings.

Loads configuration from environment variables and .env files.
"""

from functools import lru_cache
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="LABFORMULA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Application Settings
    # ==========================================================================
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level")
    json_logs: bool = Field(default=False, description="Emit JSON formatted logs")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Log level must be a standard logging level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    # ==========================================================================
    # Evaluation
    # ==========================================================================
    comparison_epsilon: float = Field(
        default=1e-10,
        description="Tolerance used by == and != comparisons",
    )

    @field_validator("comparison_epsilon")
    @classmethod
    def validate_epsilon(cls, v: float) -> float:
        """Epsilon must be strictly positive."""
        if v <= 0:
            raise ValueError("comparison_epsilon must be greater than zero")
        return v

    # ==========================================================================
    # Variable Matching
    # ==========================================================================
    fuzzy_token_threshold: float = Field(
        default=0.6,
        description="Minimum token overlap ratio for the last fuzzy matching stage",
    )
    fuzzy_min_token_length: int = Field(
        default=3, ge=1, description="Tokens shorter than this are ignored"
    )

    @field_validator("fuzzy_token_threshold")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        """Threshold must lie in (0, 1]."""
        if not 0 < v <= 1:
            raise ValueError("fuzzy_token_threshold must be in the range (0, 1]")
        return v

    # ==========================================================================
    # Table Layout
    # ==========================================================================
    variable_column: str = Field(
        default="Variable", description="Header of the column naming each row's variable"
    )
    excluded_columns: Annotated[list[str], NoDecode] = Field(
        default=["id", "Variable", "Data Source", "Method", "Unit", "LOQ"],
        description="Columns that are never evaluated as data columns",
    )
    loq_column: str = Field(
        default="LOQ", description="Column holding each variable's limit of quantification"
    )

    @field_validator("excluded_columns", mode="before")
    @classmethod
    def parse_excluded_columns(cls, v: Any) -> list[str]:
        """Parse excluded columns from comma-separated string."""
        if isinstance(v, str):
            return [column.strip() for column in v.split(",") if column.strip()]
        return v

    # ==========================================================================
    # Highlight Output
    # ==========================================================================
    row_id_prefix: str = Field(default="row-", description="Prefix of highlighted row ids")
    row_id_base: int = Field(
        default=1, description="Number added to the zero-based row index in row ids"
    )
    highlight_evaluation_errors: bool = Field(
        default=True,
        description="Emit an error-colored highlight when a formula fails to evaluate",
    )
    error_highlight_color: str = Field(
        default="#ff6b6b", description="Color used for evaluation error highlights"
    )

    @field_validator("row_id_base")
    @classmethod
    def validate_row_id_base(cls, v: int) -> int:
        """Only zero- and one-based row ids are meaningful."""
        if v not in (0, 1):
            raise ValueError("row_id_base must be 0 or 1")
        return v

    # ==========================================================================
    # Validator Heuristics
    # ==========================================================================
    max_workspace_conditions: int = Field(
        default=3, ge=1, description="Warn above this many conditions in workspace formulas"
    )
    max_workspace_variables: int = Field(
        default=5, ge=1, description="Warn above this many variables in workspace formulas"
    )

    # ==========================================================================
    # Caching
    # ==========================================================================
    parse_cache_size: int = Field(
        default=512, ge=1, description="Maximum number of parsed formulas kept by ParseCache"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


# Global settings instance
settings = get_settings()
