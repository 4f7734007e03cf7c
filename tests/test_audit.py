import json
from pathlib import Path
from types import MappingProxyType

import pytest

from bulkmigrate.audit import AuditLog, error_to_record
from bulkmigrate.errors import AuditLogError
from helpers import FakeRemoteError, read_log


def test_payload_entry_for_success(audit_log: AuditLog) -> None:
    audit_log.log_payload(
        input=MappingProxyType({"Id": "a", "Url": "u"}),
        payload={"file": "u"},
        response={"public_id": "a"},
        error=None,
    )

    [entry] = read_log(audit_log.path)
    assert entry["flow"] == "payload"
    assert entry["run_key"] == "test-run"
    assert entry["input"] == {"Id": "a", "Url": "u"}
    assert entry["response"] == {"public_id": "a"}
    assert entry["summary"] == {"status": "MIGRATED", "error": None}
    assert entry["timestamp"]


def test_payload_entry_for_failure_keeps_error_fields(audit_log: AuditLog) -> None:
    audit_log.log_payload(
        input={"Id": "a"},
        payload=None,
        response=None,
        error=FakeRemoteError("Resource not found", http_code=404),
    )

    [entry] = read_log(audit_log.path)
    error = entry["summary"]["error"]
    assert entry["summary"]["status"] == "FAILED"
    assert error["kind"] == "FakeRemoteError"
    assert error["message"] == "Resource not found"
    assert error["http_code"] == 404


def test_error_record_nests_cause() -> None:
    try:
        try:
            raise KeyError("Url")
        except KeyError as inner:
            raise ValueError("bad row") from inner
    except ValueError as exc:
        record = error_to_record(exc)

    assert record["kind"] == "ValueError"
    assert record["cause"]["kind"] == "KeyError"
    assert record["cause"]["cause"] is None
    assert "Traceback" in record["traceback"]
    json.dumps(record)


def test_script_entries_and_append_only(tmp_path: Path) -> None:
    path = tmp_path / "log.jsonl"
    path.write_text('{"flow": "script", "msg": "earlier"}\n', encoding="utf-8")

    with AuditLog(path, run_key="r1") as log:
        log.log_script("migration complete", stats={"attempted": 1})

    entries = read_log(path)
    assert entries[0] == {"flow": "script", "msg": "earlier"}
    assert entries[1]["msg"] == "migration complete"
    assert entries[1]["stats"] == {"attempted": 1}


def test_write_without_open_raises(tmp_path: Path) -> None:
    log = AuditLog(tmp_path / "log.jsonl")

    with pytest.raises(AuditLogError):
        log.log_script("hello")


def test_write_failure_is_fatal(audit_log: AuditLog, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_write(_text: str) -> int:
        raise OSError("disk full")

    monkeypatch.setattr(audit_log._handle, "write", broken_write)

    with pytest.raises(AuditLogError, match="disk full"):
        audit_log.log_script("hello")


def test_unopenable_log_raises(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")

    with pytest.raises(AuditLogError):
        AuditLog(blocker / "log.jsonl").open()
