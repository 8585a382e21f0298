from __future__ import annotations

from decimal import Decimal
from functools import cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ARTIFACTS_DIR = PROJECT_ROOT / "artifacts"
DB_FILE = ARTIFACTS_DIR / "crypto_taxes.db"


class AppSettings(BaseSettings):
    database_file: Path = DB_FILE
    log_level: str = "INFO"
    capital_loss_limit_usd: Decimal = Decimal(3000)
    default_wallets: list[str] = []

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="CRYPTO_TAX_", extra="ignore"
    )


@cache
def config() -> AppSettings:
    return AppSettings()
