from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[1]  # .../ev-quote-builder
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
    return int(v)


def _get_float(*keys: str, default: float) -> float:
    v = _get_env(*keys, default=None)
    if v is None:
        return default
    return float(v)


def _get_path(*keys: str, default: str) -> str:
    v = _get_env(*keys, default=default)
    return str(v)


@dataclass(frozen=True)
class Settings:
    bot_token: str
    admin_id: int
    db_path: str
    export_dir: str
    currency: str
    currency_symbol: str
    decimals: int
    default_language: str
    openai_base_url: str | None
    openai_api_key: str | None
    translation_model: str
    translation_timeout: float
    logo_max_bytes: int
    company_name_zh: str
    company_name_en: str

    def require_bot(self) -> None:
        if not self.bot_token:
            raise RuntimeError("BOT_TOKEN is empty. Set BOT_TOKEN in .env")
        if not self.admin_id:
            raise RuntimeError("ADMIN_ID is empty. Set ADMIN_ID (or ADMIN_TG_ID) in .env")


settings = Settings(
    bot_token=_get_env("BOT_TOKEN", "TELEGRAM_BOT_TOKEN", default="") or "",
    admin_id=_get_int("ADMIN_ID", "ADMIN_TG_ID", "ADMIN_TG", default=0) or 0,
    db_path=_get_path("DB_PATH", "DATABASE_PATH", default=str(ROOT_DIR / "data" / "catalog.db")),
    export_dir=_get_path("EXPORT_DIR", default=str(ROOT_DIR / "exports")),
    currency=_get_env("CURRENCY", default="CNY") or "CNY",
    currency_symbol=_get_env("CURRENCY_SYMBOL", default="¥") or "¥",
    decimals=_get_int("DECIMALS", default=2) or 2,
    default_language=_get_env("DEFAULT_LANGUAGE", default="zh") or "zh",
    openai_base_url=_get_env("OPENAI_BASE_URL", default=None),
    openai_api_key=_get_env("OPENAI_API_KEY", default=None),
    translation_model=_get_env("TRANSLATION_MODEL", "OPENAI_MODEL", default="gpt-4o-mini") or "gpt-4o-mini",
    translation_timeout=_get_float("TRANSLATION_TIMEOUT", default=60.0),
    logo_max_bytes=_get_int("LOGO_MAX_BYTES", default=2 * 1024 * 1024) or 2 * 1024 * 1024,
    company_name_zh=_get_env("COMPANY_NAME_ZH", default="浙江奔宝车业有限公司") or "",
    company_name_en=_get_env("COMPANY_NAME_EN", default="ZHEJIANG BENBAO VEHICLE CO., LTD.") or "",
)
