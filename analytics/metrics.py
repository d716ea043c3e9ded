import json
import logging
import sys
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional

from data.models import TrialOutcome, TrialSpec
from experiment.runtime.paths import trial_log_path
from experiment.session_metrics import MetricsAggregator


logger = logging.getLogger(__name__)


def load_events(path: Path) -> List[dict]:
    p = Path(path)
    if not p.exists():
        logger.warning("No trial log found at %s", p)
        return []
    records = []
    with p.open("r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as exc:
                logger.warning("Skipping bad line %d in %s: %s", lineno, p, exc)
    return records


def split_by_run(events: List[dict]) -> Dict[str, List[dict]]:
    runs = defaultdict(list)
    for e in events:
        runs[str(e.get("unique_id") or "unknown")].append(e)
    return runs


def outcome_from_event(e: dict) -> Optional[TrialOutcome]:
    try:
        start = int(e.get("stimulus_start_time") or 0)
        end = int(e.get("stimulus_end_time") or start)
        return TrialOutcome(
            index=int(e["trial_number"]) - 1,
            spec=TrialSpec(e["stimulus_type"], e["stimulus_value"]),
            response=e.get("response_given"),
            reaction_time_ms=e.get("reaction_time_ms"),
            stimulus_start_ms=start,
            stimulus_end_ms=end,
            sdt_category=e["sdt_category"],
        )
    except (KeyError, TypeError, ValueError) as exc:
        logger.warning("Skipping malformed trial line %s: %s", e, exc)
        return None


def summarize_run(events: List[dict]) -> dict:
    agg = MetricsAggregator()
    for e in events:
        outcome = outcome_from_event(e)
        if outcome is not None:
            agg.add_outcome(outcome)
    m = agg.finalize()
    return {
        "group": int(events[0].get("group", 0)) if events else 0,
        "trials": m.total,
        "hits": m.hits,
        "misses": m.misses,
        "false_alarms": m.false_alarms,
        "correct_rejections": m.correct_rejections,
        "hit_rate": m.hit_rate,
        "false_alarm_rate": m.false_alarm_rate,
        "d_prime": m.d_prime,
        "criterion": m.criterion,
        "mean_rt": m.average_reaction_time_ms,
    }


def aggregate_by_group(summaries: Dict[str, dict]) -> Dict[int, dict]:
    grouped = defaultdict(list)
    for s in summaries.values():
        grouped[s["group"]].append(s)

    results = {}
    for group, items in sorted(grouped.items()):
        rts = [i["mean_rt"] for i in items if i["mean_rt"] is not None]
        results[group] = {
            "runs": len(items),
            "hit_rate": sum(i["hit_rate"] for i in items) / len(items),
            "false_alarm_rate": sum(i["false_alarm_rate"] for i in items) / len(items),
            "d_prime": sum(i["d_prime"] for i in items) / len(items),
            "criterion": sum(i["criterion"] for i in items) / len(items),
            "mean_rt": sum(rts) / len(rts) if rts else None,
        }
    return results


def _fmt_rt(rt) -> str:
    return "n/a" if rt is None else f"{rt:.1f}"


def print_report(summaries: Dict[str, dict]) -> None:
    if not summaries:
        print("No runs found.")
        return

    print("Run metrics:")
    for run_id, s in summaries.items():
        print(
            f"- {run_id} [group {s['group']}] "
            f"n={s['trials']} "
            f"H={s['hits']} M={s['misses']} FA={s['false_alarms']} CR={s['correct_rejections']} "
            f"d'={s['d_prime']:.3f} "
            f"c={s['criterion']:.3f} "
            f"rt={_fmt_rt(s['mean_rt'])}"
        )

    print("\nAggregate by group:")
    for group, s in aggregate_by_group(summaries).items():
        print(
            f"- group {group} (n={s['runs']}): "
            f"hit={s['hit_rate']:.3f} "
            f"fa={s['false_alarm_rate']:.3f} "
            f"d'={s['d_prime']:.3f} "
            f"c={s['criterion']:.3f} "
            f"rt={_fmt_rt(s['mean_rt'])}"
        )


def main(argv=None) -> None:
    logging.basicConfig(level=logging.INFO)
    argv = sys.argv[1:] if argv is None else argv
    path = Path(argv[0]) if argv else trial_log_path()
    runs = split_by_run(load_events(path))
    summaries = {run_id: summarize_run(events) for run_id, events in runs.items()}
    print_report(summaries)


if __name__ == "__main__":
    main()
