from functools import lru_cache
import os
from pydantic import BaseModel, Field


class Settings(BaseModel):
    env: str = Field(default="dev", alias="ENV")
    timezone: str = Field(default="Europe/Lisbon", alias="TIMEZONE")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    postgres_db: str = Field(default="gymflow", alias="POSTGRES_DB")
    postgres_user: str = Field(default="gymflow", alias="POSTGRES_USER")
    postgres_password: str = Field(default="gymflow", alias="POSTGRES_PASSWORD")
    postgres_host: str = Field(default="localhost", alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")

    auth_jwt_secret: str = Field(default="secret", alias="AUTH_JWT_SECRET")
    auth_jwt_audience: str = Field(default="authenticated", alias="AUTH_JWT_AUDIENCE")

    email_function_url: str = Field(default="", alias="EMAIL_FUNCTION_URL")
    email_api_key: str = Field(default="", alias="EMAIL_API_KEY")
    email_from: str = Field(default="no-reply@gymflow.local", alias="EMAIL_FROM")

    event_queue_size: int = Field(default=1000, alias="EVENT_QUEUE_SIZE")
    event_dispatch_interval_sec: int = Field(default=5, alias="EVENT_DISPATCH_INTERVAL_SEC")
    waitlist_reconcile_interval_min: int = Field(
        default=10, alias="WAITLIST_RECONCILE_INTERVAL_MIN"
    )
    scheduler_enabled: bool = Field(default=True, alias="SCHEDULER_ENABLED")

    class Config:
        populate_by_name = True

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(**os.environ)
