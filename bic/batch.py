from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from .engine import build_output_path, process_image
from .errors import ScanError
from .results import FileTask, ProcessResult
from .settings import ConvertSettings, validate_settings


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchSummary:
    total_files: int
    converted: int
    skipped: int
    failed: int
    total_src_bytes: int
    total_out_bytes: int
    saved_bytes: int
    elapsed_seconds: float
    cancelled: bool = False

    @property
    def saved_percent(self) -> float:
        if self.total_src_bytes <= 0:
            return 0.0
        return (self.saved_bytes / self.total_src_bytes) * 100.0


def scan_directory(root: Path, exclude_dir: Optional[Path] = None) -> List[Path]:
    """
    Return every non-directory entry under root, at any depth.

    No extension filter: anything that isn't an image fails later, per file.
    Directories are not followed through symlinks.

    exclude_dir:
        If provided, this directory is not descended into.
        (Prevents re-processing output files when output_dir is inside input_dir.)

    Raises ScanError if root or any directory below it can't be read.
    """
    root = Path(root).resolve()
    exclude_resolved = exclude_dir.resolve() if exclude_dir else None

    files: List[Path] = []
    pending = [root]
    while pending:
        current = pending.pop()
        try:
            with os.scandir(current) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            raise ScanError(current, e) from e

        subdirs = []
        for entry in entries:
            path = Path(entry.path)
            if entry.is_dir(follow_symlinks=False):
                if exclude_resolved and path.is_relative_to(exclude_resolved):
                    continue
                subdirs.append(path)
            else:
                files.append(path)

        # Reversed so the stack pops them in name order.
        pending.extend(reversed(subdirs))

    return files


def plan_tasks(files: Sequence[Path], settings: ConvertSettings) -> List[FileTask]:
    """
    Pair each input with its output path.

    When two inputs map to the same output (photo.png and photo.jpg both
    becoming photo.webp) the first one keeps it; later ones get
    conflict_with set and fail instead of racing on the same file.
    """
    owners: Dict[Path, Path] = {}
    tasks: List[FileTask] = []

    for src in files:
        out = build_output_path(src, settings)
        owner = owners.setdefault(out, src)
        tasks.append(FileTask(src_path=src, out_path=out, conflict_with=None if owner == src else owner))

    return tasks


def process_batch(
    settings: ConvertSettings,
    on_start: Optional[Callable[[List[FileTask]], None]] = None,
    on_result: Optional[Callable[[ProcessResult], None]] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    cancel_event: Optional[threading.Event] = None,
) -> tuple[List[ProcessResult], BatchSummary]:
    """
    Scan settings.input_dir and convert everything found.

    Raises SettingsError (before scanning) or ScanError (before converting
    anything). Per-file problems never raise; they show up as failed
    results. Callbacks run on the calling thread.
    """
    started = time.perf_counter()
    settings = validate_settings(settings)

    files = scan_directory(settings.input_dir, exclude_dir=settings.output_dir)
    tasks = plan_tasks(files, settings)
    total = len(tasks)
    log.info("Found %d files in %s", total, settings.input_dir)

    if on_start:
        on_start(tasks)

    by_task: Dict[FileTask, ProcessResult] = {}
    cancelled = False

    if tasks:
        with ThreadPoolExecutor(max_workers=settings.workers, thread_name_prefix="bic") as executor:
            futures: Dict[Future, FileTask] = {executor.submit(process_image, t, settings): t for t in tasks}
            try:
                for done, future in enumerate(as_completed(futures), start=1):
                    result = future.result()
                    by_task[futures[future]] = result

                    if on_result:
                        on_result(result)
                    if progress_callback:
                        progress_callback(done, total)

                    if cancel_event and cancel_event.is_set():
                        cancelled = True
                        break
            finally:
                # Only pending work is dropped; running conversions finish.
                if cancelled or len(by_task) < total:
                    for f in futures:
                        f.cancel()

        if cancelled:
            # Leaving the pool waited for conversions that were already running;
            # their outputs are on disk, so they count.
            for future, task in futures.items():
                if task not in by_task and future.done() and not future.cancelled():
                    result = future.result()
                    by_task[task] = result
                    if on_result:
                        on_result(result)

    # Plan order, not completion order
    results = [by_task[t] for t in tasks if t in by_task]
    summary = _summarize(results, time.perf_counter() - started, total, cancelled)
    return results, summary


def _summarize(
    results: List[ProcessResult],
    elapsed: float,
    total_files: int,
    cancelled: bool,
) -> BatchSummary:
    converted = [r for r in results if r.status == "converted"]
    return BatchSummary(
        total_files=total_files,
        converted=len(converted),
        skipped=sum(1 for r in results if r.status == "skipped"),
        failed=sum(1 for r in results if r.status == "failed"),
        total_src_bytes=sum(r.src_bytes for r in converted),
        total_out_bytes=sum(r.out_bytes for r in converted),
        saved_bytes=sum(r.saved_bytes for r in results),
        elapsed_seconds=elapsed,
        cancelled=cancelled,
    )
