from pathlib import Path

import pytest

from bulkmigrate.errors import SourceError
from bulkmigrate.records import read_records


def test_reads_rows_keyed_by_header(tmp_path: Path) -> None:
    path = tmp_path / "input.csv"
    path.write_text("Id,Url,Tags\nsample,https://cdn.example.com/a.jpg,\"a,b\"\n", encoding="utf-8")

    records = list(read_records(path))

    assert records == [{"Id": "sample", "Url": "https://cdn.example.com/a.jpg", "Tags": "a,b"}]
    assert list(records[0]) == ["Id", "Url", "Tags"]


def test_records_are_read_only(tmp_path: Path) -> None:
    path = tmp_path / "input.csv"
    path.write_text("Id\none\n", encoding="utf-8")

    record = next(read_records(path))

    with pytest.raises(TypeError):
        record["Id"] = "two"  # type: ignore[index]


def test_skips_blank_lines_and_byte_order_mark(tmp_path: Path) -> None:
    path = tmp_path / "input.csv"
    path.write_bytes(b"\xef\xbb\xbfId,Url\n\none,u1\n\ntwo,u2\n")

    assert [record["Id"] for record in read_records(path)] == ["one", "two"]


def test_short_row_fails_fast_after_earlier_rows(tmp_path: Path) -> None:
    path = tmp_path / "input.csv"
    path.write_text("Id,Url\none,u1\ntwo\nthree,u3\n", encoding="utf-8")

    records = read_records(path)
    assert next(records)["Id"] == "one"
    with pytest.raises(SourceError, match="line 3"):
        next(records)


def test_long_row_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "input.csv"
    path.write_text("Id,Url\none,u1,extra\n", encoding="utf-8")

    with pytest.raises(SourceError, match="3 fields, expected 2"):
        list(read_records(path))


def test_missing_file_raises_source_error_on_iteration(tmp_path: Path) -> None:
    records = read_records(tmp_path / "nope.csv")

    with pytest.raises(SourceError, match="cannot open input file"):
        next(records)


def test_empty_file_yields_nothing(tmp_path: Path) -> None:
    path = tmp_path / "input.csv"
    path.write_text("", encoding="utf-8")

    assert list(read_records(path)) == []


def test_each_call_reopens_the_file(tmp_path: Path) -> None:
    path = tmp_path / "input.csv"
    path.write_text("Id\none\ntwo\n", encoding="utf-8")

    assert [record["Id"] for record in read_records(path)] == ["one", "two"]
    assert [record["Id"] for record in read_records(path)] == ["one", "two"]
