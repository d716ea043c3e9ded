from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any


logger = logging.getLogger(__name__)


def _read_runs(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    payload = json.loads(path.read_text(encoding="utf-8"))
    runs = payload.get("runs") if isinstance(payload, dict) else None
    if not isinstance(runs, dict):
        raise ValueError("expected an object with a 'runs' mapping")
    return runs


def _move_aside(path: Path) -> Path:
    target = path.with_name(path.name + ".corrupt")
    n = 1
    while target.exists():
        target = path.with_name(f"{path.name}.corrupt{n}")
        n += 1
    path.replace(target)
    return target


def load_pending_runs(path: Path) -> dict[str, Any]:
    try:
        return _read_runs(path)
    except (OSError, ValueError) as exc:
        logger.error("Pending runs file %s is unreadable: %s", path, exc)
        return {}


def save_pending_runs(path: Path, runs: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(
        json.dumps({"runs": runs}, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    tmp.replace(path)


def add_pending_run(path: Path, run_id: str, record: dict[str, Any]) -> None:
    # a damaged file still holds unsent runs: keep it, never overwrite it
    try:
        runs = _read_runs(path)
    except ValueError as exc:
        moved = _move_aside(path)
        logger.error("Pending runs file %s is damaged (%s); moved to %s", path, exc, moved)
        runs = {}
    runs[run_id] = record
    save_pending_runs(path, runs)


def remove_pending_run(path: Path, run_id: str) -> bool:
    runs = load_pending_runs(path)
    if run_id not in runs:
        return False
    del runs[run_id]
    save_pending_runs(path, runs)
    return True
