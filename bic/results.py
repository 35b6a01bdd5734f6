from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Optional


Status = Literal["converted", "skipped", "failed"]


@dataclass(frozen=True)
class FileTask:
    """One discovered input and where its output goes."""

    src_path: Path
    out_path: Path
    # Set when an earlier task of the same run already owns out_path.
    conflict_with: Optional[Path] = None


@dataclass(frozen=True)
class ProcessResult:
    """
    Output of processing a single image.

    Keeping it immutable (frozen=True) makes it easier to reason about.
    """
    src_path: Path
    out_path: Path
    status: Status
    src_bytes: int = 0
    out_bytes: int = 0
    skipped_reason: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "converted"

    @property
    def saved_bytes(self) -> int:
        # Not clamped: re-encoding can make a file bigger.
        if not self.ok:
            return 0
        return self.src_bytes - self.out_bytes

    @property
    def saved_percent(self) -> float:
        if not self.ok or self.src_bytes <= 0:
            return 0.0
        return (self.saved_bytes / self.src_bytes) * 100.0
