"""Daily Metrics — Central Configuration via Pydantic Settings."""

from typing import List, Optional

from pydantic_settings import BaseSettings
from sqlalchemy.engine import URL


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Database ──
    db_host: str = "localhost"
    db_port: int = 3306
    db_name: str = ""
    db_user: str = ""
    db_password: Optional[str] = None  # must be present, may be empty
    database_url: str = ""  # overrides the DB_* settings when set

    # ── App ──
    log_level: str = "INFO"
    scheduler_enabled: bool = True
    metrics_hour: int = 2  # Daily run at 02:00
    metrics_minute: int = 0
    scheduler_timezone: str = "UTC"

    # ── Aggregation ──
    query_timeout_seconds: int = 30
    aggregation_workers: int = 1
    upsert_batch_size: int = 500

    def missing_settings(self) -> List[str]:
        """Names of required environment variables that are not set."""
        if self.database_url:
            return []
        missing = []
        if not self.db_name:
            missing.append("DB_NAME")
        if not self.db_user:
            missing.append("DB_USER")
        if self.db_password is None:
            missing.append("DB_PASSWORD")
        return missing

    @property
    def effective_database_url(self) -> str:
        """Return DATABASE_URL if set, otherwise build the MySQL URL."""
        if self.database_url:
            return self.database_url
        url = URL.create(
            "mysql+pymysql",
            username=self.db_user,
            password=self.db_password or "",
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
            query={"charset": "utf8mb4"},
        )
        return url.render_as_string(hide_password=False)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
