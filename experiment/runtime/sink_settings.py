from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from config.settings import SinkConfig


logger = logging.getLogger(__name__)

ENV_URL = "SART_SINK_URL"
ENV_KEY = "SART_SINK_KEY"


def load_sink_settings(
    settings_path: Path,
    default_url: str = "",
    default_key: str = "",
    env_url: str | None = None,
    env_key: str | None = None,
) -> SinkConfig:
    env_url = (os.getenv(ENV_URL, "") if env_url is None else env_url).strip()
    env_key = (os.getenv(ENV_KEY, "") if env_key is None else env_key).strip()

    resolved_default_url = env_url or default_url
    resolved_default_key = env_key or default_key

    if not settings_path.exists():
        return SinkConfig(endpoint_url=resolved_default_url, api_key=resolved_default_key)

    try:
        payload = json.loads(settings_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable sink settings %s: %s", settings_path, exc)
        return SinkConfig(endpoint_url=resolved_default_url, api_key=resolved_default_key)
    if not isinstance(payload, dict):
        return SinkConfig(endpoint_url=resolved_default_url, api_key=resolved_default_key)

    url = str(payload.get("endpoint_url", resolved_default_url)).strip() or resolved_default_url
    key = str(payload.get("api_key", resolved_default_key)).strip() or resolved_default_key
    table = str(payload.get("table", "")).strip() or SinkConfig.table
    if env_url:
        url = env_url
    if env_key:
        key = env_key
    return SinkConfig(endpoint_url=url, api_key=key, table=table)


def save_sink_settings(settings_path: Path, config: SinkConfig) -> None:
    payload = {
        "endpoint_url": config.endpoint_url.strip(),
        "api_key": config.api_key.strip(),
        "table": config.table,
    }
    settings_path.parent.mkdir(parents=True, exist_ok=True)
    settings_path.write_text(
        json.dumps(payload, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
