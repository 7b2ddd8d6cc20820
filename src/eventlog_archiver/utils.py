"""
Logging setup for eventlog-archiver runs.

The run log is append-only: every significant action emits one line and a
separator line opens each host's section.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

SECTION_SEPARATOR = "-" * 60


def setup_logging(
    log_file: Optional[Path] = None,
    quiet: bool = False,
    level: str = "INFO",
) -> logging.Logger:
    """
    Configure the root logger with an optional run log and console echo.

    Args:
        log_file: Run log path, opened in append mode
        quiet: Suppress console output
        level: Log level name

    Returns:
        The configured root logger
    """
    root = logging.getLogger()
    try:
        root.setLevel(getattr(logging, level.upper()))
    except AttributeError:
        root.setLevel(logging.INFO)

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    if not quiet:
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(formatter)
        root.addHandler(stream_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    if not root.handlers:
        root.addHandler(logging.NullHandler())

    return root
