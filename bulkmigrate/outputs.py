from pathlib import Path

from bulkmigrate.errors import OutputFolderError


LOG_FILE_NAME = "log.jsonl"
REPORT_FILE_NAME = "report.csv"


def log_file_path(output_folder: Path | str) -> Path:
    return Path(output_folder) / LOG_FILE_NAME


def report_file_path(output_folder: Path | str) -> Path:
    return Path(output_folder) / REPORT_FILE_NAME


def prepare_output_folder(output_folder: Path | str) -> Path:
    """Create the output folder, refusing one that already holds a log or report."""
    folder = Path(output_folder)
    existing = [path for path in (log_file_path(folder), report_file_path(folder)) if path.exists()]
    if existing:
        names = ", ".join(str(path) for path in existing)
        raise OutputFolderError(
            f"output folder already contains {names}; choose another folder or move the existing files"
        )
    folder.mkdir(parents=True, exist_ok=True)
    return folder
