from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

_BACKEND_ENV_PATH = Path(__file__).resolve().parents[1] / ".env"
_DOTENV_LOADED = False


def ensure_backend_env_loaded() -> None:
    global _DOTENV_LOADED
    if _DOTENV_LOADED:
        return
    load_dotenv(dotenv_path=_BACKEND_ENV_PATH, override=False)
    _DOTENV_LOADED = True


def _to_int(value: str | None, default: int) -> int:
    if value is None:
        return default
    text = value.strip()
    if not text:
        return default
    try:
        return int(text)
    except ValueError:
        return default


def _to_float(value: str | None, default: float) -> float:
    if value is None:
        return default
    text = value.strip()
    if not text:
        return default
    try:
        return float(text)
    except ValueError:
        return default


def _to_list(value: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None:
        return default
    items = tuple(part.strip() for part in value.split(",") if part.strip())
    return items or default


@dataclass(frozen=True)
class Settings:
    default_current_working_days: int = 25
    default_last_working_days: int = 26
    multi_month_fallback_working_days: int = 22
    max_range_months: int = 6
    company_name: str = "Credence Housing Limited"
    company_address: str = "House-15, Road-13/A, Dhanmondi R/A, Dhaka-1209"
    llm_model: str = "gemini/gemini-2.5-flash"
    llm_api_key: str = ""
    llm_temperature: float = 0.2
    log_level: str = "INFO"
    log_format: str = "json"
    cors_origins: tuple[str, ...] = field(default_factory=lambda: ("*",))

    @property
    def llm_enabled(self) -> bool:
        return bool(self.llm_api_key)


def load_settings() -> Settings:
    ensure_backend_env_loaded()
    defaults = Settings()
    return Settings(
        default_current_working_days=_to_int(
            os.getenv("DEFAULT_CURRENT_WORKING_DAYS"), defaults.default_current_working_days
        ),
        default_last_working_days=_to_int(
            os.getenv("DEFAULT_LAST_WORKING_DAYS"), defaults.default_last_working_days
        ),
        multi_month_fallback_working_days=_to_int(
            os.getenv("MULTI_MONTH_FALLBACK_WORKING_DAYS"), defaults.multi_month_fallback_working_days
        ),
        max_range_months=_to_int(os.getenv("MAX_RANGE_MONTHS"), defaults.max_range_months),
        company_name=(os.getenv("COMPANY_NAME") or "").strip() or defaults.company_name,
        company_address=(os.getenv("COMPANY_ADDRESS") or "").strip() or defaults.company_address,
        llm_model=(os.getenv("LLM_MODEL") or "").strip() or defaults.llm_model,
        llm_api_key=(os.getenv("LLM_API_KEY") or "").strip(),
        llm_temperature=_to_float(os.getenv("LLM_TEMPERATURE"), defaults.llm_temperature),
        log_level=(os.getenv("LOG_LEVEL") or "").strip() or defaults.log_level,
        log_format=(os.getenv("LOG_FORMAT") or "").strip().lower() or defaults.log_format,
        cors_origins=_to_list(os.getenv("CORS_ORIGINS"), defaults.cors_origins),
    )


settings = load_settings()
