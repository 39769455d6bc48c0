from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def find_env_file() -> str:
    env_file = ".env" if Path("/.dockerenv").exists() else ".env.local"

    current_path = Path.cwd()

    for path in [current_path] + list(current_path.parents):
        env_path = path / env_file
        if env_path.exists():
            return str(env_path)

    return env_file


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=find_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+pysqlite:///./motor_rental.db"
    database_time_zone: str = "+07:00"  # WIB, imposed on every connection

    # Fine policy
    fine_rate: float = 0.5
    penalty_multiplier: float = 1.5
    per_minute_max_minutes: int = 120  # up to 2h late -> charged per minute
    per_hour_max_minutes: int = 480  # up to 8h late -> charged per hour

    # Overdue sweep worker
    overdue_sweep_interval_sec: int = 300
    metrics_port: int = 8001

    # Logging
    log_level: str = "INFO"
    log_json: bool = False
