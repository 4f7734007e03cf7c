class MigrationError(RuntimeError):
    pass


class SourceError(MigrationError):
    """Input file is missing, unreadable or structurally malformed."""


class ItemTransformError(MigrationError):
    pass


class ItemExecutionError(MigrationError):
    pass


class AuditLogError(MigrationError):
    """The audit log could not be written; the run cannot continue."""


class ReportParseError(MigrationError):
    def __init__(self, line_number: int, reason: str) -> None:
        super().__init__(f"log line {line_number}: {reason}")
        self.line_number = line_number
        self.reason = reason


class OutputFolderError(MigrationError):
    pass


class PluginLoadError(MigrationError):
    pass
