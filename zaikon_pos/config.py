import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv


@dataclass
class AppConfig:
    database_url: str
    secret_key: str
    log_level: str
    tracking_base_url: str
    currency: str
    default_cooking_eta: int = 20
    default_delivery_eta: int = 15
    eta_extension_minutes: int = 5
    auto_complete_hours: int = 2

    def get_tracking_url(self, token: str) -> str:
        base = self.tracking_base_url.rstrip("/")
        return f"{base}/track/{token}"


ALLOWED_HOT_KEYS = {"CURRENCY", "DEFAULT_COOKING_ETA", "DEFAULT_DELIVERY_ETA", "ETA_EXTENSION_MINUTES", "AUTO_COMPLETE_HOURS"}
SENSITIVE_KEYS = {"DATABASE_URL", "SECRET_KEY", "ADMIN_PASSWORD"}


def validate_currency(value: Optional[str]) -> str:
    v = (value or "PKR").strip().upper()
    if len(v) != 3:
        raise ValueError("Invalid currency code: expected ISO4217 length 3")
    return v


def validate_minutes(value, key: str, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        minutes = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{key} must be an integer") from exc
    if minutes <= 0:
        raise ValueError(f"{key} must be > 0")
    return minutes


def _load_settings_file(path: Optional[Path] = None) -> dict:
    path = path or Path(__file__).resolve().parents[1] / "data" / "settings.json"
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ValueError(f"Unreadable settings file {path}: {exc}") from exc
    return data if isinstance(data, dict) else {}


def load_env(settings_path: Optional[Path] = None) -> AppConfig:
    # data/settings.json wins for non-sensitive keys, .env and the environment fill the rest
    load_dotenv()
    s = _load_settings_file(settings_path)

    def pick(key: str):
        return s.get(key) or os.getenv(key)

    return AppConfig(
        database_url=os.getenv("DATABASE_URL", "sqlite:///data/app.db"),
        secret_key=os.getenv("SECRET_KEY", "dev_secret"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        tracking_base_url=(pick("TRACKING_BASE_URL") or "http://127.0.0.1:5000").rstrip("/"),
        currency=validate_currency(pick("CURRENCY")),
        default_cooking_eta=validate_minutes(pick("DEFAULT_COOKING_ETA"), "DEFAULT_COOKING_ETA", 20),
        default_delivery_eta=validate_minutes(pick("DEFAULT_DELIVERY_ETA"), "DEFAULT_DELIVERY_ETA", 15),
        eta_extension_minutes=validate_minutes(pick("ETA_EXTENSION_MINUTES"), "ETA_EXTENSION_MINUTES", 5),
        auto_complete_hours=validate_minutes(pick("AUTO_COMPLETE_HOURS"), "AUTO_COMPLETE_HOURS", 2),
    )


def refresh_non_sensitive(overrides: Dict[str, str], current: AppConfig) -> AppConfig:
    updates = {k: v for k, v in (overrides or {}).items() if k in ALLOWED_HOT_KEYS}
    return replace(
        current,
        currency=validate_currency(updates.get("CURRENCY", current.currency)),
        default_cooking_eta=validate_minutes(
            updates.get("DEFAULT_COOKING_ETA"), "DEFAULT_COOKING_ETA", current.default_cooking_eta
        ),
        default_delivery_eta=validate_minutes(
            updates.get("DEFAULT_DELIVERY_ETA"), "DEFAULT_DELIVERY_ETA", current.default_delivery_eta
        ),
        eta_extension_minutes=validate_minutes(
            updates.get("ETA_EXTENSION_MINUTES"), "ETA_EXTENSION_MINUTES", current.eta_extension_minutes
        ),
        auto_complete_hours=validate_minutes(
            updates.get("AUTO_COMPLETE_HOURS"), "AUTO_COMPLETE_HOURS", current.auto_complete_hours
        ),
    )


def requires_restart(changed_keys: List[str]) -> bool:
    if not changed_keys:
        return False
    return any(k in SENSITIVE_KEYS for k in changed_keys)
