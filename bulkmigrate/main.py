import argparse
import logging
from pathlib import Path

from bulkmigrate.config import Settings, get_settings
from bulkmigrate.database import build_session_factory
from bulkmigrate.errors import MigrationError
from bulkmigrate.outputs import log_file_path, report_file_path
from bulkmigrate.pipeline import MigrationPipeline
from bulkmigrate.plugins import load_callable
from bulkmigrate.report import build_report, extract_failed_records
from bulkmigrate.run_store import list_runs
from bulkmigrate.runner import validate_concurrency


logger = logging.getLogger(__name__)


def _existing_file(value: str) -> Path:
    path = Path(value)
    if not path.is_file():
        raise argparse.ArgumentTypeError(f"file does not exist: {value}")
    return path


def _concurrency(value: str) -> int:
    try:
        return validate_concurrency(int(value))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Bulk migrate or update remote assets from a CSV file, with a JSONL log and CSV report"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="process every row of an input CSV file")
    run_parser.add_argument("-f", "--from-csv-file", required=True, type=_existing_file, help="CSV file detailing assets")
    run_parser.add_argument(
        "-o",
        "--output-folder",
        required=True,
        help="Folder for log.jsonl and report.csv; must not already contain either",
    )
    run_parser.add_argument(
        "-c",
        "--max-concurrent-uploads",
        type=_concurrency,
        default=None,
        help="Max number of concurrent operations (1-20)",
    )
    run_parser.add_argument("--executor", default=None, help="Operation executor as module:attribute")
    run_parser.add_argument("--transform", default=None, help="Payload transform as module:attribute")
    run_parser.add_argument(
        "--operation",
        default="migrate",
        choices=["migrate", "update"],
        help="Label recorded for this run",
    )
    run_parser.add_argument("--run-key", required=False, help="Identifier recorded in the log and run ledger")

    report_parser = subparsers.add_parser("report", help="rebuild report.csv from log.jsonl")
    report_parser.add_argument("-o", "--output-folder", required=True)

    retry_parser = subparsers.add_parser("retry-input", help="write failed rows from report.csv as a new input CSV")
    retry_parser.add_argument("-o", "--output-folder", required=True)
    retry_parser.add_argument("--to-csv-file", required=True)

    runs_parser = subparsers.add_parser("runs", help="list recent runs from the run ledger")
    runs_parser.add_argument("--limit", type=int, default=20)

    return parser.parse_args(argv)


def _run(args: argparse.Namespace, settings: Settings) -> int:
    executor_ref = args.executor or settings.operation_executor
    if not executor_ref:
        print("error: no operation executor configured (use --executor or OPERATION_EXECUTOR)")
        return 2

    try:
        transform = load_callable(args.transform or settings.payload_transform)
        executor = load_callable(executor_ref)
        pipeline = MigrationPipeline(settings, build_session_factory(settings.database_url))
        result = pipeline.run(
            input_path=args.from_csv_file,
            output_folder=args.output_folder,
            transform=transform,
            executor=executor,
            concurrency=args.max_concurrent_uploads,
            operation=args.operation,
            run_key=args.run_key,
        )
    except MigrationError as exc:
        print(f"error: {exc}")
        return 1

    print(
        "run_id={run_id} run_key={run_key} operation={operation} status={status} attempted={attempted} succeeded={succeeded} failed={failed} log={log} report={report}".format(
            run_id=result.run_id,
            run_key=result.run_key,
            operation=result.operation,
            status=result.status,
            attempted=result.stats.attempted,
            succeeded=result.stats.succeeded,
            failed=result.stats.failed,
            log=result.log_path,
            report=result.report_path,
        )
    )
    if result.error:
        print(f"error: {result.error}")
    if result.report_error:
        print(f"report error: {result.report_error}")
    return 0 if result.ok else 1


def _report(args: argparse.Namespace) -> int:
    log_path = log_file_path(args.output_folder)
    if not log_path.is_file():
        print(f"error: log file not found: {log_path}")
        return 1
    report_path = report_file_path(args.output_folder)
    try:
        rows = build_report(log_path, report_path)
    except MigrationError as exc:
        print(f"error: {exc}")
        return 1
    print(f"rows={rows} report={report_path}")
    return 0


def _retry_input(args: argparse.Namespace) -> int:
    report_path = report_file_path(args.output_folder)
    if not report_path.is_file():
        print(f"error: report file not found: {report_path}")
        return 1
    rows = extract_failed_records(report_path, args.to_csv_file)
    print(f"failed_rows={rows} input={args.to_csv_file}")
    return 0


def _runs(args: argparse.Namespace, settings: Settings) -> int:
    session_factory = build_session_factory(settings.database_url)
    with session_factory() as db:
        for run in list_runs(db, limit=args.limit):
            print(
                f"{run.id}\t{run.status}\t{run.operation}\tattempted={run.attempted} "
                f"succeeded={run.succeeded} failed={run.failed}\t{run.output_folder}"
            )
    return 0


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    if args.command == "report":
        code = _report(args)
    elif args.command == "retry-input":
        code = _retry_input(args)
    elif args.command == "runs":
        code = _runs(args, settings)
    else:
        code = _run(args, settings)

    if code:
        raise SystemExit(code)


if __name__ == "__main__":
    main()
