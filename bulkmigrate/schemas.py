from dataclasses import dataclass

from bulkmigrate.stats import Stats


@dataclass(frozen=True)
class RunResult:
    run_id: int
    run_key: str
    operation: str
    status: str
    stats: Stats
    log_path: str
    report_path: str | None
    error: str | None = None
    report_error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "succeeded" and self.report_error is None
