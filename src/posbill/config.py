from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os
import sys
from typing import Mapping, Optional


@dataclass(frozen=True)
class AppPaths:
    base_dir: Path
    logs_dir: Path


@dataclass(frozen=True)
class Settings:
    api_url: str = "http://localhost:5000/api"
    api_token: Optional[str] = None
    api_timeout: float = 10.0
    scan_gap_ms: int = 100
    increment_repeat_scans: bool = False
    compensate_partial_saves: bool = False


def _windows_appdata() -> Path:
    return Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))


def _mac_app_support() -> Path:
    return Path.home() / "Library" / "Application Support"


def get_app_paths(app_name: str = "PosBilling") -> AppPaths:
    if sys.platform.startswith("win"):
        base = _windows_appdata() / app_name
    elif sys.platform == "darwin":
        base = _mac_app_support() / app_name
    else:
        base = Path.home() / f".{app_name.lower()}"

    logs = base / "logs"

    base.mkdir(parents=True, exist_ok=True)
    logs.mkdir(parents=True, exist_ok=True)

    return AppPaths(base_dir=base, logs_dir=logs)


def _flag(raw: Optional[str]) -> bool:
    return (raw or "").strip().lower() in ("1", "true", "yes", "on")


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if env is None else env
    defaults = Settings()

    try:
        timeout = float(env.get("POSBILL_API_TIMEOUT", defaults.api_timeout))
    except ValueError:
        timeout = defaults.api_timeout
    try:
        gap_ms = int(env.get("POSBILL_SCAN_GAP_MS", defaults.scan_gap_ms))
    except ValueError:
        gap_ms = defaults.scan_gap_ms

    return Settings(
        api_url=(env.get("POSBILL_API_URL") or defaults.api_url).rstrip("/"),
        api_token=env.get("POSBILL_API_TOKEN") or None,
        api_timeout=timeout if timeout > 0 else defaults.api_timeout,
        scan_gap_ms=gap_ms if gap_ms > 0 else defaults.scan_gap_ms,
        increment_repeat_scans=_flag(env.get("POSBILL_INCREMENT_REPEAT_SCANS")),
        compensate_partial_saves=_flag(env.get("POSBILL_COMPENSATE_PARTIAL_SAVES")),
    )
