from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from project root so it loads regardless of cwd
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./clinic_scheduler.db"

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Clinics without a configured IANA zone fall back to this one
    default_timezone: str = "UTC"

    # Slot generation / conflict rules
    slot_batch_size: int = 500
    conflict_window_days: int = 90
    max_range_days: int = 30
    # Raise TimezoneAmbiguity for local times skipped by a DST jump instead of dropping the slot
    strict_dst: bool = False

    # Env
    env: str = "development"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


settings = Settings()
