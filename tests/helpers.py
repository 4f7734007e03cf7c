import asyncio
import csv
import hashlib
import json
from pathlib import Path


MISSING_MARKER = "does-not-exist"


class FakeRemoteError(Exception):
    def __init__(self, message: str, http_code: int) -> None:
        super().__init__(message)
        self.http_code = http_code


async def echo_upload(payload: dict) -> dict:
    """Stand-in for a remote upload: fails for URLs that name a missing asset."""
    await asyncio.sleep(0)
    file = payload["file"]
    if MISSING_MARKER in file:
        raise FakeRemoteError(f"Resource not found - {file}", http_code=404)
    public_id = payload["options"].get("public_id") or Path(file).stem
    return {
        "public_id": public_id,
        "etag": hashlib.md5(file.encode("utf-8")).hexdigest(),
        "overwritten": public_id.startswith("existing_"),
        "secure_url": f"https://media.example.com/{public_id}",
    }


class TrackingExecutor:
    """Records how many calls are unresolved at once."""

    def __init__(self, delay: float = 0.01, fail_on: set[str] | None = None) -> None:
        self.delay = delay
        self.fail_on = fail_on or set()
        self.in_flight = 0
        self.max_in_flight = 0
        self.calls: list[object] = []

    async def __call__(self, payload: dict) -> dict:
        self.calls.append(payload)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if payload["options"]["public_id"] in self.fail_on:
                raise RuntimeError(f"upload rejected for {payload['options']['public_id']}")
            return {"public_id": payload["options"]["public_id"], "etag": "abc123", "overwritten": False}
        finally:
            self.in_flight -= 1


def write_csv(path: Path, rows: list[dict[str, str]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    fieldnames: list[str] = []
    for row in rows:
        for key in row:
            if key not in fieldnames:
                fieldnames.append(key)
    with path.open("w", encoding="utf-8", newline="") as outfile:
        writer = csv.DictWriter(outfile, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)
    return path


def read_log(path: Path) -> list[dict]:
    with path.open("r", encoding="utf-8") as infile:
        return [json.loads(line) for line in infile if line.strip()]


def read_report(path: Path) -> list[dict[str, str]]:
    with path.open("r", encoding="utf-8", newline="") as infile:
        return list(csv.DictReader(infile))


def asset_rows(count: int, prefix: str = "asset") -> list[dict[str, str]]:
    return [
        {"Id": f"{prefix}_{index}", "Url": f"https://cdn.example.com/{prefix}_{index}.jpg"}
        for index in range(count)
    ]
