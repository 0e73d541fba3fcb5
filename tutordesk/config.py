"""Application configuration from environment variables."""

from functools import lru_cache

from pydantic import ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = ConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./tutordesk.db",
        description="Async SQLAlchemy connection string",
    )
    database_echo: bool = Field(default=False, description="Log SQL queries")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/server.log", description="Server log file path")

    # Directory paging
    page_size: int = Field(default=25, description="Accounts per directory page")
    max_page_size: int = Field(default=200, description="Largest page size a caller may request")

    # Result ceilings for broad queries.
    # The two limits differ (500 vs 2000); kept separate until unified.
    search_result_limit: int = Field(
        default=500, description="Row ceiling for each search branch"
    )
    balance_sort_limit: int = Field(
        default=2000, description="Account ceiling when sorting by outstanding balance"
    )

    # Interactive behaviour
    search_debounce_ms: int = Field(default=300, description="Search input debounce delay")
    query_timeout_seconds: float = Field(
        default=30.0, description="Deadline for a single directory operation"
    )

    # Bulk operations
    bulk_batch_size: int = Field(default=100, description="Accounts per bulk update transaction")

    # Billing
    open_ledger_statuses: list[str] = Field(
        default=["sent", "partial", "overdue"],
        description="Ledger entry statuses that contribute to outstanding balance",
    )

    # API
    api_title: str = Field(default="tutordesk API", description="API title")
    api_version: str = Field(default="0.1.0", description="API version")

    @field_validator(
        "page_size",
        "max_page_size",
        "search_result_limit",
        "balance_sort_limit",
        "bulk_batch_size",
    )
    @classmethod
    def _positive_limit(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("query_timeout_seconds")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

    @field_validator("search_debounce_ms")
    @classmethod
    def _non_negative_debounce(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @property
    def search_debounce_seconds(self) -> float:
        return self.search_debounce_ms / 1000


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings"]
