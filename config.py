import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        secret_key: str,
        session_max_age_hours: int,
        currency_symbol: str,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.secret_key = secret_key
        self.session_max_age_hours = session_max_age_hours
        self.currency_symbol = currency_symbol
        self.log_level = log_level


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINANCES_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("FINANCES_DATABASE_URL")
    if not database_url:
        data_dir = _ensure_data_dir()
        database_url = f"sqlite:///{data_dir / 'finances.db'}"
    timezone = os.getenv("FINANCES_TIMEZONE", "America/Sao_Paulo")
    secret_key = os.getenv(
        "FINANCES_SECRET_KEY",
        "3f9c1d7a54e2b08c6a1f4e9d2b7c05a8e6d3f1b2c4a9e7d0f5b8c2a6e1d4f7b9",
    )
    session_max_age_hours = int(os.getenv("FINANCES_SESSION_MAX_AGE_HOURS", "168"))
    currency_symbol = os.getenv("FINANCES_CURRENCY_SYMBOL", "R$")
    log_level = os.getenv("FINANCES_LOG_LEVEL", "INFO").upper()
    return Settings(
        database_url=database_url,
        timezone=timezone,
        secret_key=secret_key,
        session_max_age_hours=session_max_age_hours,
        currency_symbol=currency_symbol,
        log_level=log_level,
    )
