from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    # Twilio Configuration
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""  # Shared secret used to sign status callbacks
    twilio_caller_id: str = ""
    twilio_api_base_url: str = "https://api.twilio.com/2010-04-01"
    telephony_provider: str = "twilio"

    # Public URLs
    # public_base_url is handed to the provider as the StatusCallback origin.
    # webhook_public_base_url overrides the origin used for signature checks
    # when the app sits behind a proxy that rewrites Host.
    public_base_url: str = ""
    webhook_public_base_url: str = ""

    # Database Configuration
    # Use SQLite by default for easy local development
    # Set db_type to "mysql" and configure mysql settings for production
    db_type: str = "sqlite"  # "sqlite" or "mysql"

    # SQLite settings
    sqlite_path: str = "callportal.db"

    # MySQL settings (used when db_type="mysql")
    db_host: str = "localhost"
    db_port: int = 3306
    db_name: str = "callportal"
    db_user: str = "root"
    db_password: str = ""

    # Application Settings
    api_port: int = 8000
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"

    # Event stream settings
    stream_keepalive_seconds: float = 15.0
    stream_queue_size: int = 100

    # Record only terminal provider statuses (completed, no-answer, busy, ...)
    ignore_non_terminal_statuses: bool = False

    # Outbound dialing
    dial_allowed_pattern: str = r"^\+[1-9]\d{7,14}$"

    @property
    def database_url(self) -> str:
        if self.db_type == "sqlite":
            return f"sqlite:///./{self.sqlite_path}"
        return f"mysql+pymysql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def is_twilio_configured(self) -> bool:
        """Check whether outbound REST calls to Twilio are possible."""
        return bool(self.twilio_account_sid and self.twilio_auth_token and self.twilio_caller_id)

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
