import csv
from collections.abc import Iterator, Mapping
from pathlib import Path
from types import MappingProxyType

from bulkmigrate.errors import SourceError


InputRecord = Mapping[str, str]


def read_records(input_path: Path | str) -> Iterator[InputRecord]:
    """Yield one read-only record per CSV data row, decoding lazily.

    The first row names the fields. A row whose field count differs from the
    header aborts the source with ``SourceError``; blank lines are skipped.
    """
    input_path = Path(input_path)
    try:
        infile = input_path.open("r", encoding="utf-8-sig", newline="")
    except OSError as exc:
        raise SourceError(f"cannot open input file {input_path}: {exc}") from exc

    with infile:
        reader = csv.reader(infile)
        try:
            header = next(reader, None)
            if header is None:
                return
            for row in reader:
                if not row:
                    continue
                if len(row) != len(header):
                    raise SourceError(
                        f"{input_path}: line {reader.line_num} has {len(row)} fields, expected {len(header)}"
                    )
                yield MappingProxyType(dict(zip(header, row)))
        except (csv.Error, UnicodeDecodeError, OSError) as exc:
            raise SourceError(f"{input_path}: line {reader.line_num}: {exc}") from exc
