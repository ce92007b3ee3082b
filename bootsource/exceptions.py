"""Custom exceptions for the boot source resolver."""

from __future__ import annotations

from typing import Optional

from bootsource.constants import (
    EXIT_ALIAS,
    EXIT_ARCHIVE_MISSING,
    EXIT_CONVERSION,
    EXIT_DOWNLOAD,
    EXIT_FAILURE,
)


class ManagerError(RuntimeError):
    """Raised on unrecoverable configuration or runtime errors."""

    exit_code = EXIT_FAILURE

    def __init__(self, message: str, exit_code: Optional[int] = None) -> None:
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidImageError(ManagerError):
    """The candidate looked like a disk image but could not be read or placed."""


class AliasError(ManagerError):
    exit_code = EXIT_ALIAS


class DownloadError(ManagerError):
    """A single download attempt failed; ``kind`` says why."""

    exit_code = EXIT_DOWNLOAD

    def __init__(self, message: str, kind: str = "generic", exit_code: Optional[int] = None) -> None:
        super().__init__(message, exit_code)
        self.kind = kind


class ExtractionError(ManagerError):
    exit_code = EXIT_ARCHIVE_MISSING


class ConversionError(ManagerError):
    exit_code = EXIT_CONVERSION
