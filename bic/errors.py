from __future__ import annotations

from pathlib import Path


class BicError(Exception):
    """Base class for every error raised by the converter."""


class SettingsError(BicError, ValueError):
    """Settings failed validation. Raised before any file is touched."""


class UnsupportedFormatError(SettingsError):
    def __init__(self, fmt: str, reason: str = "unknown output format") -> None:
        super().__init__(f"{reason}: {fmt!r}")
        self.format = fmt


class ScanError(BicError, OSError):
    """The input tree could not be read. Fatal for the whole run."""

    def __init__(self, path: Path, cause: OSError) -> None:
        super().__init__(f"cannot read directory {path}: {cause.strerror or cause}")
        self.path = path
        self.cause = cause


class OutputConflictError(BicError):
    """Two inputs of the same run map to one output path."""

    def __init__(self, out_path: Path, claimed_by: Path) -> None:
        super().__init__(f"output {out_path} already claimed by {claimed_by}")
        self.out_path = out_path
        self.claimed_by = claimed_by
