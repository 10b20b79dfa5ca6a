import enum
from pathlib import Path
from tempfile import gettempdir
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from yarl import URL

TEMP_DIR = Path(gettempdir())


class LogLevel(str, enum.Enum):
    """Possible log levels."""

    NOTSET = "NOTSET"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    FATAL = "FATAL"


class Settings(BaseSettings):
    """
    Application settings.

    These parameters can be configured
    with environment variables.
    """

    host: str = "127.0.0.1"
    port: int = 8000
    # quantity of workers for uvicorn
    workers_count: int = 1
    # Enable uvicorn reloading
    reload: bool = False

    # Current environment
    environment: str = "dev"

    log_level: LogLevel = LogLevel.INFO

    # Packages whose models.py is loaded into the metadata
    app_names: List[str] = [
        "members",
        "events",
        "directory",
        "configuration",
    ]

    # Variables for the database
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "councilhub"
    db_pass: str = "councilhub"
    db_base: str = "councilhub"
    db_echo: bool = False

    # Variables for Redis
    redis_host: str = "councilhub-redis"
    redis_port: int = 6379
    redis_user: Optional[str] = None
    redis_pass: Optional[str] = None
    redis_base: Optional[int] = None

    # Variables for RabbitMQ
    rabbit_host: str = "councilhub-rmq"
    rabbit_port: int = 5672
    rabbit_user: str = "guest"
    rabbit_pass: str = "guest"
    rabbit_vhost: str = "/"

    # Grpc endpoint for opentelemetry.
    # E.G. http://localhost:4317
    opentelemetry_endpoint: Optional[str] = None

    # Tokens
    jwt_secret: str = "change-me-in-production-please-change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    refresh_token_expire_days: int = 7
    session_cookie_name: str = "session"

    # Public URL used in emails
    site_url: str = "http://localhost:8000"
    site_name: str = "Sports Council"
    # Where new registration notices go
    notification_email: Optional[str] = None

    # Key for credentials stored in the settings table; falls back to jwt_secret
    encryption_key: Optional[str] = None

    verification_token_hours: int = 24
    max_csv_bytes: int = 5 * 1024 * 1024

    # Environment fallbacks for integrations
    gmail_client_id: Optional[str] = None
    gmail_client_secret: Optional[str] = None
    gmail_refresh_token: Optional[str] = None
    gmail_sender: Optional[str] = None

    gcs_project_id: Optional[str] = None
    gcs_client_email: Optional[str] = None
    gcs_private_key: Optional[str] = None
    gcs_bucket_name: Optional[str] = None

    recaptcha_site_key: Optional[str] = None
    recaptcha_secret_key: Optional[str] = None

    @property
    def db_url(self) -> URL:
        """
        Assemble database URL from settings.

        :return: database URL.
        """
        return URL.build(
            scheme="postgresql+asyncpg",
            host=self.db_host,
            port=self.db_port,
            user=self.db_user,
            password=self.db_pass,
            path=f"/{self.db_base}",
        )

    @property
    def redis_url(self) -> URL:
        """
        Assemble REDIS URL from settings.

        :return: redis URL.
        """
        path = ""
        if self.redis_base is not None:
            path = f"/{self.redis_base}"
        return URL.build(
            scheme="redis",
            host=self.redis_host,
            port=self.redis_port,
            user=self.redis_user,
            password=self.redis_pass,
            path=path,
        )

    @property
    def rabbit_url(self) -> URL:
        """
        Assemble RabbitMQ URL from settings.

        :return: rabbit URL.
        """
        return URL.build(
            scheme="amqp",
            host=self.rabbit_host,
            port=self.rabbit_port,
            user=self.rabbit_user,
            password=self.rabbit_pass,
            path=self.rabbit_vhost,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="COUNCILHUB_",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
