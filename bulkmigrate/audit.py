from collections.abc import Mapping
from datetime import UTC, datetime
import json
from pathlib import Path
import traceback
from typing import IO

from bulkmigrate.errors import AuditLogError


SCRIPT_FLOW = "script"
PAYLOAD_FLOW = "payload"

STATUS_MIGRATED = "MIGRATED"
STATUS_FAILED = "FAILED"

_MAX_CAUSE_DEPTH = 8


def utc_timestamp() -> str:
    return datetime.now(UTC).isoformat()


def error_to_record(exc: BaseException, _depth: int = 0) -> dict[str, object]:
    """Flatten an exception into a JSON-ready mapping.

    Public instance attributes (status codes, response bodies and the like) are
    carried over; the explicit cause, or the implicit context, nests under
    ``cause``.
    """
    record: dict[str, object] = {
        "kind": type(exc).__name__,
        "message": str(exc),
        "traceback": "".join(traceback.format_exception(exc)),
    }
    for key, value in vars(exc).items():
        if key.startswith("_") or key in record:
            continue
        record[key] = value

    cause = exc.__cause__
    if cause is None and not exc.__suppress_context__:
        cause = exc.__context__
    if cause is not None and _depth < _MAX_CAUSE_DEPTH:
        record["cause"] = error_to_record(cause, _depth + 1)
    else:
        record["cause"] = None
    return record


class AuditLog:
    """Append-only JSONL audit trail for one run.

    Every entry carries ``flow``, ``msg``, ``run_key`` and a UTC ``timestamp``.
    Lines are flushed as they are written so an interrupted run keeps every
    completed item.
    """

    def __init__(self, path: Path | str, *, run_key: str | None = None) -> None:
        self.path = Path(path)
        self.run_key = run_key
        self._handle: IO[str] | None = None

    def open(self) -> "AuditLog":
        if self._handle is None:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._handle = self.path.open("a", encoding="utf-8")
            except OSError as exc:
                raise AuditLogError(f"cannot open audit log {self.path}: {exc}") from exc
        return self

    def close(self) -> None:
        if self._handle is not None:
            handle, self._handle = self._handle, None
            try:
                handle.close()
            except OSError as exc:
                raise AuditLogError(f"cannot close audit log {self.path}: {exc}") from exc

    @property
    def closed(self) -> bool:
        return self._handle is None

    def __enter__(self) -> "AuditLog":
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def log_event(self, flow: str, msg: str, **data: object) -> None:
        entry: dict[str, object] = dict(data)
        entry.update(flow=flow, msg=msg, run_key=self.run_key, timestamp=utc_timestamp())
        self._write(entry)

    def log_script(self, msg: str, **data: object) -> None:
        self.log_event(SCRIPT_FLOW, msg, **data)

    def log_payload(
        self,
        *,
        input: Mapping[str, str] | None,
        payload: object,
        response: object,
        error: BaseException | None,
    ) -> None:
        summary = {
            "status": STATUS_FAILED if error is not None else STATUS_MIGRATED,
            "error": error_to_record(error) if error is not None else None,
        }
        self.log_event(
            PAYLOAD_FLOW,
            "item processed",
            input=dict(input) if input is not None else None,
            payload=payload,
            response=response,
            summary=summary,
        )

    def _write(self, entry: dict[str, object]) -> None:
        if self._handle is None:
            raise AuditLogError(f"audit log {self.path} is not open")
        try:
            line = json.dumps(entry, sort_keys=True, ensure_ascii=False, default=str)
            self._handle.write(line)
            self._handle.write("\n")
            self._handle.flush()
        except (OSError, ValueError) as exc:
            raise AuditLogError(f"cannot write audit log {self.path}: {exc}") from exc
