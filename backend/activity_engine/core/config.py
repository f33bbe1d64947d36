from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    PROJECT_NAME: str = "Activity Engine"

    BASE_DIR: Path = Path(__file__).resolve().parents[2]
    DATA_DIR: Path = BASE_DIR / "data"
    DATABASE_URL: str = f"sqlite:///{(DATA_DIR / 'activity_engine.db').as_posix()}"
    FIT_IMPORT_DIR: Path = BASE_DIR / "data" / "fit_exports"
    REPORTS_DIR: Path = BASE_DIR / "data" / "reports"

    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ALLOW_ORIGINS: list[str] = ["*"]

    # Day boundary used to bucket sessions into daily summaries.
    ACTIVITY_TIMEZONE: str = "UTC"

    DEFAULT_ROLLUP_WEEKS: int = 4
    DEFAULT_SUMMARY_DAYS: int = 14
    DEFAULT_STATS_DAYS: int = 14

    FIT_IMPORT_PROFILE_ID: str | None = None

settings = Settings()
