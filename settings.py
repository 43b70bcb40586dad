from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # `.env.prod` takes priority over `.env`
        env_file=(".env", ".env.prod"),
        extra="ignore",
    )

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 5000

    # Session tokens
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24  # 0 disables the exp claim
    bcrypt_rounds: int = 10

    # Database (falls back to DB_* vars, then local SQLite)
    database_url: Optional[str] = None

    # Completion provider
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    openai_model: str = "gpt-4"
    llm_timeout_seconds: float = 60.0

    # Outbound mail
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_use_tls: bool = True
    smtp_timeout_seconds: float = 30.0
    email_user: Optional[str] = None
    email_pass: Optional[str] = None
    email_from: Optional[str] = None

    # Operator credential for GET /reminders/send; open when unset
    reminder_trigger_token: Optional[str] = None

    cors_origins: List[str] = [
        "http://localhost",
        "http://localhost:3000",
        "http://localhost:8000",
        "http://127.0.0.1",
        "http://127.0.0.1:8000",
    ]


@lru_cache()
def get_settings() -> Settings:
    return Settings()
