import os
from typing import Optional
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseModel):
    app_env: str = os.getenv("APP_ENV") or os.getenv("NODE_ENV", "not set")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    site_url: str = os.getenv("SITE_URL", "not set")

    # LLM via OpenRouter (OpenAI-compatible API)
    openrouter_api_key: Optional[str] = os.getenv("OPENROUTER_API_KEY")
    openrouter_base_url: str = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
    demo_mode: bool = os.getenv("DEMO_MODE", "false").lower() == "true"

    # Demo gate
    demo_password: str = os.getenv("DEMO_PASSWORD", "recess2024")
    session_max_age: int = int(os.getenv("SESSION_MAX_AGE", str(24 * 60 * 60)))

    # Postgres: DATABASE_URL wins, discrete PG_* vars otherwise
    database_url: Optional[str] = os.getenv("DATABASE_URL")
    pg_host: str = os.getenv("PG_HOST", "localhost")
    pg_port: int = int(os.getenv("PG_PORT", "5432"))
    pg_user: str = os.getenv("PG_USER", "postgres")
    pg_password: str = os.getenv("PG_PASSWORD", "")
    pg_database: str = os.getenv("PG_DATABASE", "recess")
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))

    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    recommendation_engine_url: Optional[str] = os.getenv("RECOMMENDATION_ENGINE_URL")

    cors_origins: str = os.getenv("CORS_ORIGINS", "")

    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        auth = self.pg_user if not self.pg_password else f"{self.pg_user}:{self.pg_password}"
        return f"postgresql://{auth}@{self.pg_host}:{self.pg_port}/{self.pg_database}"

settings = Settings()
