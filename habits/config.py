"""
Configuration settings for the Loop Habits backend
"""
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "Loop Habits Backend"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = Field(default=False, validation_alias="DEBUG")
    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # Paths
    BASE_DIR: Path = Path(__file__).resolve().parent.parent
    DATA_DIR: Path = BASE_DIR / "data"

    # Database
    DATABASE_PATH: Path = Field(
        default=BASE_DIR / "data" / "habits.db",
        validation_alias="DATABASE_PATH"
    )
    DB_POOL_SIZE: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    DB_POOL_TIMEOUT_SECONDS: float = Field(default=30.0, validation_alias="DB_POOL_TIMEOUT_SECONDS")
    DB_BUSY_TIMEOUT_MS: int = Field(default=10000, validation_alias="DB_BUSY_TIMEOUT_MS")

    # Export snapshots and uploads land here (system temp dir when unset)
    TEMP_DIR: Optional[Path] = Field(default=None, validation_alias="TEMP_DIR")

    # CORS
    CORS_ALLOWED_ORIGINS: list[str] = Field(
        default=[
            "https://melodious-tenderness-production.up.railway.app",
            "http://localhost:5173",
        ],
        validation_alias="CORS_ALLOWED_ORIGINS",
    )

    # API Server
    API_HOST: str = Field(default="0.0.0.0", validation_alias="API_HOST")
    API_PORT: int = Field(default=8080, validation_alias="API_PORT")
    API_RELOAD: bool = Field(default=False, validation_alias="API_RELOAD")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


# Global settings instance
settings = Settings()
