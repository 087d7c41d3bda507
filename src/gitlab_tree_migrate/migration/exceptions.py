"""Migration errors."""

from typing import Optional


class MigrationError(Exception):
    """Base exception for migration failures."""

    pass


class MigrationStartupError(MigrationError):
    """The run cannot start: clients, destination root or source groups."""

    pass


class ProjectMigrationError(MigrationError):
    """Migration of a single project failed."""

    def __init__(self, message: str, stage: Optional[str] = None):
        """Initialize project migration error.

        Args:
            message: Error message
            stage: Pipeline stage the project was in when it failed
        """
        super().__init__(message)
        self.stage = stage


class ExportFailedError(ProjectMigrationError):
    """The source reported the export as failed or could not be queried."""

    pass


class ExportTimeoutError(ProjectMigrationError):
    """The export did not finish within the configured time."""

    pass


class ImportFailedError(ProjectMigrationError):
    """The destination rejected the import request."""

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        status_code: Optional[int] = None,
        response_text: Optional[str] = None,
    ):
        super().__init__(message, stage=stage)
        self.status_code = status_code
        self.response_text = response_text
