from sqlalchemy import select
from sqlalchemy.orm import Session

from bulkmigrate.db_models import MigrationRun, utc_now
from bulkmigrate.stats import Stats


def create_run(
    db: Session,
    *,
    run_key: str,
    operation: str,
    input_path: str,
    output_folder: str,
    concurrency: int,
) -> MigrationRun:
    run = MigrationRun(
        run_key=run_key,
        operation=operation,
        input_path=input_path,
        output_folder=output_folder,
        concurrency=concurrency,
        status="queued",
    )
    db.add(run)
    db.commit()
    db.refresh(run)
    return run


def get_run(db: Session, run_id: int) -> MigrationRun | None:
    return db.get(MigrationRun, run_id)


def list_runs(db: Session, *, limit: int = 20) -> list[MigrationRun]:
    stmt = select(MigrationRun).order_by(MigrationRun.id.desc()).limit(limit)
    return list(db.execute(stmt).scalars().all())


def mark_run_running(db: Session, run: MigrationRun) -> None:
    run.status = "running"
    run.started_at = utc_now()
    run.error = None
    db.commit()


def _copy_stats(run: MigrationRun, stats: Stats) -> None:
    run.attempted = stats.attempted
    run.succeeded = stats.succeeded
    run.failed = stats.failed


def mark_run_succeeded(db: Session, run: MigrationRun, *, stats: Stats) -> None:
    # Item failures are part of a completed run; only fatal errors fail it.
    run.status = "succeeded"
    _copy_stats(run, stats)
    run.completed_at = utc_now()
    run.error = None
    db.commit()


def mark_run_failed(db: Session, run: MigrationRun, *, error: str, stats: Stats) -> None:
    run.status = "failed"
    run.error = error
    _copy_stats(run, stats)
    run.completed_at = utc_now()
    db.commit()
