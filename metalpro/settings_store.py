from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from .estimator import FINISH_MULTIPLIERS, LENGTH_OPTIONS


@dataclass
class AppSettings:
    catalog_path: str = ""
    db_path: str = ""
    default_finish: str = "standard"
    default_length_option: str = "6m"
    attention_only: bool = False


def app_data_dir() -> Path:
    appdata = os.getenv("APPDATA")
    if appdata:
        return Path(appdata) / "MetalPro"
    return Path.home() / ".metalpro"


def default_settings_path() -> Path:
    return app_data_dir() / "settings.json"


def default_db_path() -> Path:
    return app_data_dir() / "metalpro.db"


def default_log_dir() -> Path:
    return app_data_dir() / "logs"


def default_catalog_path() -> Path:
    return Path(__file__).resolve().parent / "data" / "catalog.json"


def _valid_finish(value: object) -> str:
    finish = str(value or "standard").lower().strip()
    return finish if finish in FINISH_MULTIPLIERS else "standard"


def _valid_length_option(value: object) -> str:
    option = str(value or "6m").lower().strip()
    return option if option in LENGTH_OPTIONS else "6m"


def load_settings(settings_path: Path | None = None) -> AppSettings:
    path = settings_path or default_settings_path()
    if not path.exists():
        return AppSettings(catalog_path=str(default_catalog_path()), db_path=str(default_db_path()))
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        catalog_path = str(payload.get("catalog_path", "") or "").strip() or str(default_catalog_path())
        db_path = str(payload.get("db_path", "") or "").strip() or str(default_db_path())
        return AppSettings(
            catalog_path=catalog_path,
            db_path=db_path,
            default_finish=_valid_finish(payload.get("default_finish")),
            default_length_option=_valid_length_option(payload.get("default_length_option")),
            attention_only=bool(payload.get("attention_only", False)),
        )
    except (OSError, ValueError, AttributeError):
        return AppSettings(catalog_path=str(default_catalog_path()), db_path=str(default_db_path()))


def save_settings(settings: AppSettings, settings_path: Path | None = None) -> None:
    path = settings_path or default_settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "catalog_path": str(settings.catalog_path or ""),
        "db_path": str(settings.db_path or ""),
        "default_finish": _valid_finish(settings.default_finish),
        "default_length_option": _valid_length_option(settings.default_length_option),
        "attention_only": bool(settings.attention_only),
    }
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
