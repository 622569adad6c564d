from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from project root so it loads regardless of cwd
_BACKEND_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _BACKEND_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./appointments.db"
    database_ssl: bool = False

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Env
    env: str = "development"

    # Booking rules. Weekly slots and exceptions are expressed in this timezone;
    # appointment instants are stored as naive UTC.
    business_timezone: str = "UTC"
    slot_step_minutes: int = 30

    # Reminder scheduler (tick every interval counted from midnight UTC; must divide 1440)
    reminder_scheduler_enabled: bool = True
    reminder_interval_minutes: int = 60
    reminder_hours_before: int = 24
    reminder_check_window_hours: int = 25

    # Email rendering / transport
    email_date_format: str = "%A, %B %d, %Y"
    email_time_format: str = "%H:%M"
    smtp_timeout_seconds: int = 30

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
