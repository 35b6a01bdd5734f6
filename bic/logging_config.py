from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are chatty at DEBUG.
NOISY_LOGGERS = ["PIL"]


def configure_logging(verbose: bool = False, log_file: Optional[Path] = None) -> None:
    """
    Set up the standard logging system for a CLI run.

    Console (stderr) gets WARNING and up, or DEBUG with verbose=True.
    log_file, if given, always gets DEBUG, including per-file tracebacks.
    """
    handlers: List[logging.Handler] = []

    console = logging.StreamHandler()  # Defaults to sys.stderr
    console.setLevel(logging.DEBUG if verbose else logging.WARNING)
    handlers.append(console)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    logging.basicConfig(
        level=logging.DEBUG,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "Logging configured: verbose=%s, log_file=%s", verbose, log_file
    )
