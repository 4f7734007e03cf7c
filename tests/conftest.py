from collections.abc import Generator
from pathlib import Path

import pytest

from bulkmigrate.audit import AuditLog
from bulkmigrate.config import Settings
from bulkmigrate.database import build_session_factory
from bulkmigrate.pipeline import MigrationPipeline


@pytest.fixture()
def temp_workspace(tmp_path: Path) -> Path:
    (tmp_path / "input").mkdir(parents=True, exist_ok=True)
    (tmp_path / "outputs").mkdir(parents=True, exist_ok=True)
    return tmp_path


@pytest.fixture()
def test_settings(temp_workspace: Path) -> Settings:
    return Settings(
        app_name="bulkmigrate",
        database_url=f"sqlite:///{temp_workspace / 'test.db'}",
        log_level="INFO",
        max_concurrent_uploads=2,
        payload_transform="bulkmigrate.payload:input_to_payload",
        operation_executor="",
        progress_every=1,
    )


@pytest.fixture()
def pipeline(test_settings: Settings) -> Generator[MigrationPipeline, None, None]:
    session_factory = build_session_factory(test_settings.database_url)
    yield MigrationPipeline(test_settings, session_factory)


@pytest.fixture()
def audit_log(temp_workspace: Path) -> Generator[AuditLog, None, None]:
    log = AuditLog(temp_workspace / "outputs" / "log.jsonl", run_key="test-run")
    log.open()
    yield log
    log.close()
