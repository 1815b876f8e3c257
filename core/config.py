"""
Application configuration using Pydantic Settings
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # GitHub GraphQL API
    GITHUB_TOKEN: Optional[str] = None
    GRAPHQL_URL: str = "https://api.github.com/graphql"

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Artifacts
    OUTPUT_DIR: str = "output"
    DATABASE_FILENAME: str = "database.db"
    AUDIT_LOG_FILENAME: str = "raw-responses.jsonl"

    # Fetch Configuration
    FETCH_BATCH_SIZE: int = 10
    FETCH_BATCH_PAUSE_SECONDS: float = 1.0
    MAX_RETRIES: int = 3
    RETRY_DELAY: float = 1.0
    REQUEST_TIMEOUT: float = 30.0

    # Export Configuration
    PARQUET_COMPRESSION: str = "zstd"
    PARQUET_ROW_GROUP_SIZE: int = 100000
    ENABLE_SEARCH_INDEXES: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
