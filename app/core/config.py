from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./evaluation_sessions.db"
    SQL_ECHO: bool = False

    LOG_LEVEL: str = "INFO"

    # Attachments (file storage collaborator)
    ATTACHMENTS_DIR: str = "attachments"
    MAX_ATTACHMENTS: int = 5
    MAX_ATTACHMENT_BYTES: int = 10 * 1024 * 1024

    REPORTS_DIR: str = "reports"

    # Unset disables the idle-timeout policy
    IDLE_TIMEOUT_MINUTES: Optional[int] = None

    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
