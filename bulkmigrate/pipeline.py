import asyncio
import logging
from pathlib import Path

from sqlalchemy.orm import Session, sessionmaker

from bulkmigrate.audit import AuditLog, error_to_record
from bulkmigrate.config import Settings
from bulkmigrate.db_models import MigrationRun
from bulkmigrate.errors import AuditLogError, ReportParseError
from bulkmigrate.outputs import log_file_path, prepare_output_folder, report_file_path
from bulkmigrate.records import read_records
from bulkmigrate.report import build_report
from bulkmigrate.run_store import create_run, mark_run_failed, mark_run_running, mark_run_succeeded
from bulkmigrate.runner import BoundedRunner, OperationExecutor, PayloadTransform, validate_concurrency
from bulkmigrate.schemas import RunResult
from bulkmigrate.stats import Stats


logger = logging.getLogger(__name__)


class MigrationPipeline:
    def __init__(self, settings: Settings, session_factory: sessionmaker[Session]) -> None:
        self.settings = settings
        self.session_factory = session_factory

    def run(
        self,
        *,
        input_path: Path | str,
        output_folder: Path | str,
        transform: PayloadTransform,
        executor: OperationExecutor,
        concurrency: int | None = None,
        operation: str = "migrate",
        run_key: str | None = None,
    ) -> RunResult:
        return asyncio.run(
            self.run_async(
                input_path=input_path,
                output_folder=output_folder,
                transform=transform,
                executor=executor,
                concurrency=concurrency,
                operation=operation,
                run_key=run_key,
            )
        )

    async def run_async(
        self,
        *,
        input_path: Path | str,
        output_folder: Path | str,
        transform: PayloadTransform,
        executor: OperationExecutor,
        concurrency: int | None = None,
        operation: str = "migrate",
        run_key: str | None = None,
    ) -> RunResult:
        concurrency = validate_concurrency(
            concurrency if concurrency is not None else self.settings.max_concurrent_uploads
        )
        folder = prepare_output_folder(output_folder)
        log_path = log_file_path(folder)
        report_path = report_file_path(folder)
        run_key = run_key or str(folder.resolve())

        with self.session_factory() as db:
            run = create_run(
                db,
                run_key=run_key,
                operation=operation,
                input_path=str(input_path),
                output_folder=str(folder),
                concurrency=concurrency,
            )
            mark_run_running(db, run)

            stats = Stats()
            audit_log = AuditLog(log_path, run_key=run_key)
            log_usable = True
            try:
                audit_log.open()
                audit_log.log_script(
                    "migration started",
                    parameters={
                        "operation": operation,
                        "input_path": str(input_path),
                        "output_folder": str(folder),
                        "concurrency": concurrency,
                    },
                )
                runner = BoundedRunner(
                    transform,
                    executor,
                    concurrency=concurrency,
                    audit_log=audit_log,
                    stats=stats,
                    on_progress=self._progress_logger(),
                )
                await runner.run(read_records(input_path))
                audit_log.log_script("migration complete", stats=stats.as_dict())
                audit_log.close()
            except (asyncio.CancelledError, KeyboardInterrupt) as exc:
                self._log_abort(audit_log, exc, stats, msg="migration interrupted")
                self._close_quietly(audit_log)
                mark_run_failed(db, run, error="interrupted", stats=stats)
                logger.warning("migration run interrupted", extra={"run_key": run_key})
                raise
            except Exception as exc:
                if isinstance(exc, AuditLogError):
                    log_usable = False
                else:
                    self._log_abort(audit_log, exc, stats)
                self._close_quietly(audit_log)
                mark_run_failed(db, run, error=str(exc) or type(exc).__name__, stats=stats)
                logger.exception("migration run failed", extra={"run_key": run_key})
                report, report_error = self._report(log_path, report_path) if log_usable else (None, None)
                return self._result(run, stats, log_path, report, error=str(exc), report_error=report_error)

            mark_run_succeeded(db, run, stats=stats)
            logger.info(
                "migration complete attempted=%d succeeded=%d failed=%d",
                stats.attempted,
                stats.succeeded,
                stats.failed,
                extra={"run_key": run_key},
            )
            report, report_error = self._report(log_path, report_path)
            return self._result(run, stats, log_path, report, report_error=report_error)

    def _progress_logger(self):
        every = self.settings.progress_every
        if every <= 0:
            return None

        def on_progress(stats: Stats) -> None:
            if stats.completed % every == 0:
                logger.info(
                    "progress attempted=%d succeeded=%d failed=%d in_flight=%d",
                    stats.attempted,
                    stats.succeeded,
                    stats.failed,
                    stats.concurrent,
                )

        return on_progress

    def _log_abort(
        self, audit_log: AuditLog, exc: BaseException, stats: Stats, *, msg: str = "migration aborted"
    ) -> None:
        if audit_log.closed:
            return
        try:
            audit_log.log_script(msg, error=error_to_record(exc), stats=stats.as_dict())
        except AuditLogError:
            logger.exception("could not record abort in audit log")

    def _close_quietly(self, audit_log: AuditLog) -> None:
        try:
            audit_log.close()
        except AuditLogError:
            logger.exception("could not close audit log")

    def _report(self, log_path: Path, report_path: Path) -> tuple[str | None, str | None]:
        if not log_path.exists():
            return None, None
        try:
            rows = build_report(log_path, report_path)
        except (ReportParseError, OSError) as exc:
            logger.exception("report generation failed", extra={"log_path": str(log_path)})
            return None, str(exc)
        logger.info("report written rows=%d path=%s", rows, report_path)
        return str(report_path), None

    def _result(
        self,
        run: MigrationRun,
        stats: Stats,
        log_path: Path,
        report_path: str | None,
        *,
        error: str | None = None,
        report_error: str | None = None,
    ) -> RunResult:
        return RunResult(
            run_id=run.id,
            run_key=run.run_key,
            operation=run.operation,
            status=run.status,
            stats=stats,
            log_path=str(log_path),
            report_path=report_path,
            error=error,
            report_error=report_error,
        )
