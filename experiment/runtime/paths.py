import os
import sys
from pathlib import Path


APP_NAME = "NumberToneTask"
ENV_DATA_DIR = "SART_DATA_DIR"


def _platform_root() -> Path:
    if sys.platform.startswith("win"):
        appdata = os.getenv("APPDATA")
        return Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    xdg = os.getenv("XDG_DATA_HOME")
    return Path(xdg) if xdg else Path.home() / ".local" / "share"


def app_data_dir() -> Path:
    """Per-user folder for results that could not be sent, the trial log and settings."""
    override = os.getenv(ENV_DATA_DIR, "").strip()
    target = Path(override) if override else _platform_root() / APP_NAME
    try:
        target.mkdir(parents=True, exist_ok=True)
        return target
    except OSError:
        fallback = Path.cwd() / "results_data"
        fallback.mkdir(parents=True, exist_ok=True)
        return fallback


def app_data_path(*parts: str) -> Path:
    return app_data_dir().joinpath(*parts)


def resource_path(*parts: str) -> Path:
    return Path(__file__).resolve().parents[2].joinpath(*parts)


def pending_runs_path() -> Path:
    return app_data_path("pending_runs.json")


def sink_settings_path() -> Path:
    return app_data_path("sink_settings.json")


def trial_log_path() -> Path:
    return app_data_path("trials.jsonl")
