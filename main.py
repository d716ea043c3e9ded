import argparse
import logging
import sys
from dataclasses import replace

from config.settings import MODE_MAIN, MODE_PRACTICE, TimingConfig, WindowConfig, build_run_config, estimate_minutes
from data.results_client import ResultsClient
from experiment.runtime.paths import pending_runs_path, sink_settings_path, trial_log_path
from experiment.runtime.sink_settings import load_sink_settings
from experiment.submission import retry_pending


logger = logging.getLogger("main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Number & tone go/no-go task")
    parser.add_argument("--participant", help="participant / session id stored with the results")
    parser.add_argument("--group", type=int, choices=(1, 2, 3), help="1 = visual only, 2 = + one tone, 3 = + two tones")
    parser.add_argument("--skip-practice", action="store_true")
    parser.add_argument("--no-countdown", action="store_true")
    parser.add_argument("--endpoint", default="", help="results store base URL")
    parser.add_argument("--api-key", default="")
    parser.add_argument("--retry-pending", action="store_true", help="send stored unsent runs and exit")
    parser.add_argument("--estimate", action="store_true", help="print estimated durations and exit")
    parser.add_argument("--windowed", action="store_true")
    parser.add_argument("--log-level", default="INFO")
    return parser


def make_client(args: argparse.Namespace) -> ResultsClient:
    sink = load_sink_settings(sink_settings_path())
    if args.endpoint:
        sink = replace(sink, endpoint_url=args.endpoint)
    if args.api_key:
        sink = replace(sink, api_key=args.api_key)
    return ResultsClient(sink.endpoint_url, sink.api_key, table=sink.table, timeout_sec=sink.timeout_sec)


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    timing = TimingConfig()
    if args.no_countdown:
        timing = replace(timing, countdown_steps=0)

    if args.estimate:
        groups = [args.group] if args.group else [1, 2, 3]
        for group in groups:
            practice = build_run_config(group, MODE_PRACTICE, timing)
            main_run = build_run_config(group, MODE_MAIN, timing)
            print(
                f"group {group}: practice {practice.counts.total} trials ~{estimate_minutes(practice)} min, "
                f"main {main_run.counts.total} trials ~{estimate_minutes(main_run)} min"
            )
        return 0

    client = make_client(args)

    if args.retry_pending:
        sent, remaining = retry_pending(client, pending_runs_path())
        print(f"sent {sent}, still pending {remaining}")
        return 0 if remaining == 0 else 1

    if not args.participant or args.group is None:
        parser.error("--participant and --group are required to run the task")

    ok, message = client.check_connection()
    if not ok:
        logger.warning("%s; results will be kept locally in %s", message, pending_runs_path())

    # pygame is only needed for the interactive run
    from experiment.app import ExperimentApp

    app = ExperimentApp(
        window=WindowConfig(fullscreen=not args.windowed),
        participant_id=args.participant,
        group=args.group,
        client=client,
        pending_path=pending_runs_path(),
        trial_log_path=trial_log_path(),
        timing=timing,
        skip_practice=args.skip_practice,
    )
    result = app.run()
    if result is None:
        return 1
    return 0 if result.ok else 2


if __name__ == "__main__":
    sys.exit(main())
