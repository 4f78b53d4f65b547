import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        horizon_years: int,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.horizon_years = horizon_years


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("LEDGER_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "ledger.db"
    database_url = os.getenv("LEDGER_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("LEDGER_TIMEZONE", "America/Edmonton")
    horizon_years = int(os.getenv("LEDGER_HORIZON_YEARS", "5"))
    if horizon_years < 1:
        raise ValueError("LEDGER_HORIZON_YEARS must be at least 1")
    return Settings(
        database_url=database_url,
        timezone=timezone,
        horizon_years=horizon_years,
    )
