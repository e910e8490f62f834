"""
Settings module - Pydantic env configuration
"""
from pydantic_settings import BaseSettings
from pydantic import PostgresDsn
from typing import List


class Settings(BaseSettings):
    """Application settings from environment variables"""

    # Database (from env)
    database_url: PostgresDsn
    db_pool_min_size: int = 2
    db_pool_max_size: int = 10

    # App
    app_name: str = "Affilia Back-office"
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 3001

    # Security
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_days: int = 7
    cookie_name: str = "token"

    # Reporting
    default_range_days: int = 30
    top_campaigns_limit: int = 5
    admin_metrics_page_size: int = 50

    # CORS Settings
    cors_origins: str = "http://localhost:5173"  # Comma-separated list or "*" for all

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
