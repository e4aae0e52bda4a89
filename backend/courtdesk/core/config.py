# courtdesk/core/config.py
"""
Application configuration using Pydantic Settings
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
import json
from pydantic import field_validator


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    """

    # Application
    APP_NAME: str = "Courtdesk"
    DEBUG: bool = True

    # Database
    DATABASE_URL: str = "sqlite:///./courtdesk.db"
    DATABASE_ECHO: bool = False

    # JWT Authentication (tokens are issued by the identity provider)
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440  # 24 hours

    # Case numbering: <prefix>/<year>/<seq>
    CASE_NUMBER_PREFIX: str = "KDH"

    @field_validator("CASE_NUMBER_PREFIX", mode="before")
    @classmethod
    def strip_case_number_prefix(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip().strip("/")
        return v

    # Fan-out outbox
    OUTBOX_INLINE_DISPATCH: bool = True
    OUTBOX_WORKER_ENABLED: bool = True
    OUTBOX_WORKER_INTERVAL_SECONDS: int = 30
    OUTBOX_MAX_ATTEMPTS: int = 5
    OUTBOX_BATCH_SIZE: int = 100

    # Audit sink (DynamoDB mirror is optional)
    AUDIT_DYNAMODB_ENABLED: bool = False
    AUDIT_DYNAMODB_TABLE: str = "courtdesk-audit-trail"
    AUDIT_RETENTION_DAYS: int = 3 * 365

    # AWS Configuration
    AWS_REGION: str = "eu-west-1"
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""

    # Calendar
    HEARING_DEFAULT_TIME: str = "09:00"
    HEARING_TIME_SLOTS: str = '["09:00", "10:00", "11:00", "12:00", "14:00", "15:00", "16:00"]'

    # CORS
    CORS_ORIGINS: str = '["http://localhost:5173"]'

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from string to list"""
        try:
            if isinstance(self.CORS_ORIGINS, str):
                return json.loads(self.CORS_ORIGINS)
            return self.CORS_ORIGINS
        except json.JSONDecodeError:
            return ["http://localhost:5173"]

    @property
    def hearing_time_slots_list(self) -> List[str]:
        try:
            slots = json.loads(self.HEARING_TIME_SLOTS)
        except json.JSONDecodeError:
            slots = [s.strip() for s in self.HEARING_TIME_SLOTS.split(",")]
        return [s for s in slots if s]


# Create settings instance
settings = Settings()
