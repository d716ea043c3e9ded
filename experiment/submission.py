from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Protocol

from data.models import AggregateMetrics, RunRecord, TrialOutcome
from data.results_client import SinkError
from experiment.runtime.pending_runs_store import (
    add_pending_run,
    load_pending_runs,
    remove_pending_run,
    save_pending_runs,
)


logger = logging.getLogger(__name__)


class RecordSink(Protocol):
    def submit(self, record: dict) -> None: ...


@dataclass(frozen=True)
class SubmissionResult:
    ok: bool
    record: RunRecord
    error: str = ""
    pending_path: Optional[Path] = None


def _iso(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _epoch_ms_to_iso(epoch_ms: int) -> str:
    return _iso(datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc))


def trial_row(outcome: TrialOutcome, epoch_origin_ms: int = 0) -> dict:
    return {
        "trial_number": outcome.index + 1,
        "stimulus_type": outcome.spec.stimulus_type,
        "stimulus_value": outcome.spec.stimulus_value,
        "response_given": outcome.response,
        "reaction_time_ms": outcome.reaction_time_ms,
        "sdt_category": outcome.sdt_category,
        "stimulus_start_time": epoch_origin_ms + outcome.stimulus_start_ms,
        "stimulus_end_time": epoch_origin_ms + outcome.stimulus_end_ms,
    }


def build_run_record(
    unique_id: str,
    group: int,
    outcomes: Iterable[TrialOutcome],
    metrics: AggregateMetrics,
    epoch_origin_ms: int = 0,
    completed_at: Optional[datetime] = None,
) -> RunRecord:
    rows = [trial_row(o, epoch_origin_ms) for o in outcomes]
    completed_at = completed_at or datetime.now(timezone.utc)
    if rows:
        started_at = _epoch_ms_to_iso(rows[0]["stimulus_start_time"])
    else:
        started_at = _iso(completed_at)
    return RunRecord(
        unique_id=unique_id,
        assigned_group=group,
        total_trials=len(rows),
        total_hits=metrics.hits,
        total_misses=metrics.misses,
        total_false_alarms=metrics.false_alarms,
        total_correct_rejections=metrics.correct_rejections,
        average_reaction_time=metrics.average_reaction_time_ms,
        completed_at=_iso(completed_at),
        session_start_time=started_at,
        hit_rate=metrics.hit_rate,
        false_alarm_rate=metrics.false_alarm_rate,
        corrected_hit_rate=metrics.corrected_hit_rate,
        corrected_false_alarm_rate=metrics.corrected_false_alarm_rate,
        d_prime=metrics.d_prime,
        criterion=metrics.criterion,
        trials=rows,
    )


def submit_run(record: RunRecord, client: RecordSink, pending_path: Path) -> SubmissionResult:
    """
    Sends a finished run. On failure the record is written to the pending file
    and handed back, so nothing is lost and the caller can retry later.
    """
    payload = record.to_dict()
    try:
        client.submit(payload)
    except SinkError as exc:
        try:
            add_pending_run(pending_path, record.unique_id, payload)
        except OSError as disk_exc:
            # the record only survives in memory now; the caller still gets it
            logger.error(
                "Could not save run %s (%s) nor write it to %s: %s",
                record.unique_id,
                exc,
                pending_path,
                disk_exc,
            )
            return SubmissionResult(ok=False, record=record, error=f"{exc}; {disk_exc}", pending_path=None)
        logger.warning(
            "Could not save run %s (%s); kept in %s for retry",
            record.unique_id,
            exc,
            pending_path,
        )
        return SubmissionResult(ok=False, record=record, error=str(exc), pending_path=pending_path)

    remove_pending_run(pending_path, record.unique_id)
    return SubmissionResult(ok=True, record=record)


def retry_pending(client: RecordSink, pending_path: Path) -> tuple[int, int]:
    """Re-sends every stored run. Returns (sent, still_pending)."""
    runs = load_pending_runs(pending_path)
    if not runs:
        return 0, 0
    sent = 0
    remaining = {}
    for run_id, payload in runs.items():
        try:
            client.submit(payload)
        except SinkError as exc:
            logger.warning("Run %s still not delivered: %s", run_id, exc)
            remaining[run_id] = payload
            continue
        sent += 1
    save_pending_runs(pending_path, remaining)
    logger.info("Pending runs: %d sent, %d left", sent, len(remaining))
    return sent, len(remaining)
