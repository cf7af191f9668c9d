"""Writes the rendered report to stdout or a file."""

from __future__ import annotations

import sys
from pathlib import Path

from release_report.logging_config import get_logger

logger = get_logger(__name__)


def write_output(text: str, output_file: str | Path | None = None) -> bool:
    """Write the report text.

    Args:
        text: The rendered report
        output_file: File to overwrite. Writes to stdout when None.

    Returns:
        True if the text was written, False if the file write failed
    """
    if output_file is None:
        sys.stdout.write(text)
        sys.stdout.flush()
        return True

    path = Path(output_file)
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        logger.error("output_write_failed", output_file=str(path), error=str(exc))
        return False

    logger.info("output_written", output_file=str(path), bytes=len(text.encode("utf-8")))
    return True
