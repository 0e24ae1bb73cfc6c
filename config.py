"""Settings for the order tracking web app."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from zaikon_pos.config import AppConfig, load_env
from zaikon_pos.services.logging import log_event


@dataclass
class PosAppConfig:
    """Flask-level settings wrapped around the core ``AppConfig``."""

    secret_key: str
    admin_username: str
    admin_password: str
    app_root: Path
    core: AppConfig

    @property
    def data_dir(self) -> Path:
        return self.app_root / "data"

    @property
    def settings_file(self) -> Path:
        return self.data_dir / "settings.json"

    @property
    def admin_credentials_file(self) -> Path:
        return self.data_dir / "admin.json"

    @classmethod
    def load(cls, app_root: Path = None) -> "PosAppConfig":
        """Build settings from the environment and make sure the data directory exists."""

        app_root = app_root or Path(__file__).resolve().parent
        (app_root / "data").mkdir(parents=True, exist_ok=True)
        core = load_env(app_root / "data" / "settings.json")

        config = cls(
            secret_key=os.environ.get("SECRET_KEY", core.secret_key),
            admin_username=os.environ.get("ADMIN_USER", "admin"),
            admin_password=os.environ.get("ADMIN_PASSWORD", "zaikon"),
            app_root=app_root,
            core=core,
        )

        # data/admin.json takes precedence over the environment
        if config.admin_credentials_file.exists():
            try:
                admin_data = json.loads(config.admin_credentials_file.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                log_event("warning", "config.admin_file_unreadable", path=str(config.admin_credentials_file), error=str(exc))
            else:
                if isinstance(admin_data, dict):
                    config.admin_username = admin_data.get("username", config.admin_username)
                    config.admin_password = admin_data.get("password", config.admin_password)
                    log_event("info", "config.admin_file_loaded", path=str(config.admin_credentials_file))

        return config
