from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App settings
    PROJECT_NAME: str = "FinsightEngine"
    API_PREFIX: str = "/api"
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")

    # Key-value store backend: "memory" for offline/dev, "dynamo" for the durable store
    STORE_BACKEND: str = Field(default="memory")

    # DynamoDB
    DYNAMO_REGION: str = Field(default="eu-west-1")
    DYNAMO_TABLE: str = Field(default="finsight-kv")
    DYNAMO_ENDPOINT_URL: Optional[str] = Field(default=None)

    # Persistence
    DATA_VERSION: str = "1.0.0"
    BACKUP_RETENTION_DAYS: int = Field(default=30)  # primary data is kept forever

    # Notifications
    NOTIFICATION_RETENTION_DAYS: int = Field(default=30)
    MAX_NOTIFICATIONS: int = Field(default=100)
    CURRENCY_SYMBOL: str = Field(default="₱")

    # Analytics windows (months)
    HISTORY_QUERY_MONTHS: int = Field(default=12)
    YOY_WINDOW_MONTHS: int = Field(default=24)
    TREND_WINDOW_MONTHS: int = Field(default=24)

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")


settings = Settings()
