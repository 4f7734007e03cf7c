import csv
from collections.abc import Iterator
import json
import os
from pathlib import Path

from bulkmigrate.audit import PAYLOAD_FLOW, STATUS_FAILED, STATUS_MIGRATED
from bulkmigrate.errors import ReportParseError


STATUS_COLUMN = "Status"
OPERATION_COLUMN = "Operation"
ERROR_COLUMN = "Error"
PUBLIC_ID_COLUMN = "RemotePublicId"
INTEGRITY_TAG_COLUMN = "RemoteIntegrityTag"

REPORT_COLUMNS = [STATUS_COLUMN, OPERATION_COLUMN, ERROR_COLUMN, PUBLIC_ID_COLUMN, INTEGRITY_TAG_COLUMN]


def iter_payload_entries(log_path: Path) -> Iterator[dict[str, object]]:
    """Stream payload-flow entries from a JSONL audit log.

    Lifecycle entries are skipped. A line that is not a JSON object, or a
    payload entry without a summary, raises ``ReportParseError``.
    """
    with log_path.open("r", encoding="utf-8") as infile:
        for line_number, line in enumerate(infile, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError as exc:
                raise ReportParseError(line_number, f"invalid JSON ({exc.msg})") from exc
            if not isinstance(entry, dict):
                raise ReportParseError(line_number, "entry is not a JSON object")
            if entry.get("flow") != PAYLOAD_FLOW:
                continue
            if not isinstance(entry.get("summary"), dict):
                raise ReportParseError(line_number, "payload entry has no summary")
            yield entry


def _error_text(error: object) -> str:
    if error is None:
        return ""
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str):
        return error
    return json.dumps(error, sort_keys=True, default=str)


def entry_to_row(entry: dict[str, object]) -> dict[str, object]:
    summary = entry["summary"]
    status = summary.get("status")
    row: dict[str, object] = dict(entry.get("input") or {})
    row.update(dict.fromkeys(REPORT_COLUMNS, ""))
    row[STATUS_COLUMN] = status

    if status == STATUS_MIGRATED:
        response = entry.get("response") or {}
        if isinstance(response, dict):
            row[OPERATION_COLUMN] = "Overwritten" if response.get("overwritten") else "Uploaded"
            row[PUBLIC_ID_COLUMN] = response.get("public_id") or ""
            row[INTEGRITY_TAG_COLUMN] = response.get("etag") or ""
        else:
            row[OPERATION_COLUMN] = "Uploaded"
    else:
        row[ERROR_COLUMN] = _error_text(summary.get("error"))
    return row


def _input_columns(log_path: Path) -> list[str]:
    seen: dict[str, None] = {}
    for entry in iter_payload_entries(log_path):
        for column in entry.get("input") or {}:
            seen.setdefault(column, None)
    return [column for column in seen if column not in REPORT_COLUMNS]


def build_report(log_path: Path | str, report_path: Path | str) -> int:
    """Derive the CSV report from an audit log and return the number of rows.

    The log is streamed twice: once for the input columns (first-seen order),
    once for the rows. Output only replaces ``report_path`` once complete.
    """
    log_path = Path(log_path)
    report_path = Path(report_path)
    fieldnames = _input_columns(log_path) + REPORT_COLUMNS

    tmp_path = report_path.with_name(report_path.name + ".tmp")
    report_path.parent.mkdir(parents=True, exist_ok=True)
    rows = 0
    try:
        with tmp_path.open("w", encoding="utf-8", newline="") as outfile:
            writer = csv.DictWriter(outfile, fieldnames=fieldnames, restval="", extrasaction="ignore")
            writer.writeheader()
            for entry in iter_payload_entries(log_path):
                writer.writerow(entry_to_row(entry))
                rows += 1
        os.replace(tmp_path, report_path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    return rows


def extract_failed_records(report_path: Path | str, out_path: Path | str) -> int:
    """Write the input columns of FAILED report rows as a fresh input CSV."""
    report_path = Path(report_path)
    out_path = Path(out_path)
    written = 0
    with report_path.open("r", encoding="utf-8", newline="") as infile:
        reader = csv.DictReader(infile)
        input_columns = [column for column in reader.fieldnames or [] if column not in REPORT_COLUMNS]
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with out_path.open("w", encoding="utf-8", newline="") as outfile:
            writer = csv.DictWriter(outfile, fieldnames=input_columns, extrasaction="ignore")
            writer.writeheader()
            for row in reader:
                if row.get(STATUS_COLUMN) != STATUS_FAILED:
                    continue
                writer.writerow(row)
                written += 1
    return written
