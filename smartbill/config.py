from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[1]  # .../smartbill project root
load_dotenv(dotenv_path=ROOT_DIR / ".env")


def _get_env(*keys: str, default: str | None = None) -> str | None:
    for k in keys:
        v = os.getenv(k)
        if v is not None and str(v).strip() != "":
            return v.strip()
    return default


def _get_int(*keys: str, default: int | None = None) -> int | None:
    v = _get_env(*keys, default=None)
    if v is None:
        return default
    try:
        return int(v)
    except ValueError:
        raise RuntimeError(f"{keys[0]} must be an integer, got {v!r}") from None


def _get_path(*keys: str, default: str) -> str:
    v = _get_env(*keys, default=default)
    return str(v)


@dataclass(frozen=True)
class Settings:
    db_path: str
    export_dir: str
    currency: str
    decimals: int
    store_name: str
    host: str
    port: int
    log_level: str


settings = Settings(
    db_path=_get_path("DB_PATH", "DATABASE_PATH", default=str(ROOT_DIR / "data" / "smartbill.db")),
    export_dir=_get_path("EXPORT_DIR", default=str(ROOT_DIR / "exports")),
    currency=_get_env("CURRENCY", default="₹") or "₹",
    decimals=_get_int("DECIMALS", default=2) or 2,
    store_name=_get_env("STORE_NAME", default="SmartBill Pro") or "SmartBill Pro",
    host=_get_env("HOST", default="127.0.0.1") or "127.0.0.1",
    port=_get_int("PORT", default=8000) or 8000,
    log_level=(_get_env("LOG_LEVEL", default="INFO") or "INFO").upper(),
)
