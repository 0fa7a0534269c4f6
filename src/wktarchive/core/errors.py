"""Error handling with friendly messages."""

from __future__ import annotations


class WktArchiveError(Exception):
    """Base exception for all wktarchive errors."""

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        self.message = message
        self.suggestion = suggestion
        super().__init__(message)

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.message}\nSuggestion: {self.suggestion}"
        return self.message


class ConfigError(WktArchiveError):
    """Configuration error."""

    pass


class ArchiveError(WktArchiveError):
    """Archive operation error.

    Carries the archive file and, when known, the operation that failed so
    callers can report which part of a batch went wrong.
    """

    def __init__(
        self,
        message: str,
        *,
        archive_file: str | None = None,
        operation: str | None = None,
        suggestion: str | None = None,
    ) -> None:
        self.archive_file = archive_file
        self.operation = operation
        super().__init__(message, suggestion)


class ArchiveReadError(ArchiveError):
    """Archive exists but is a directory or not a valid zip file."""

    pass


class SourcePathError(ArchiveError):
    """Source path of an add operation is missing or has the wrong type."""

    pass


class UnknownOperationError(ArchiveError):
    """Operation name is neither 'add' nor 'remove'."""

    pass


class InvalidOperationError(ArchiveError):
    """Operation is structurally invalid (empty path, remove with filePath)."""

    pass


class WriteError(ArchiveError):
    """Writing the updated archive or swapping it into place failed."""

    def __init__(
        self,
        message: str,
        *,
        archive_file: str | None = None,
        operation: str | None = None,
        original_file: str | None = None,
        new_file: str | None = None,
        suggestion: str | None = None,
    ) -> None:
        self.original_file = original_file
        self.new_file = new_file
        super().__init__(
            message, archive_file=archive_file, operation=operation, suggestion=suggestion
        )


class ExternalProcessError(ArchiveError):
    """Archive helper process could not be run or exited with an error code."""

    def __init__(
        self,
        message: str,
        *,
        archive_file: str | None = None,
        operation: str | None = None,
        exit_code: int | None = None,
        suggestion: str | None = None,
    ) -> None:
        self.exit_code = exit_code
        super().__init__(
            message, archive_file=archive_file, operation=operation, suggestion=suggestion
        )
