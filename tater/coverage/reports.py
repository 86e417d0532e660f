"""Locating and archiving the tarpaulin JSON report."""

import logging
import shutil
from pathlib import Path

from ..errors import AmbiguousReportError, ReportNotFoundError

logger = logging.getLogger(__name__)

REPORT_PATTERN = "tarpaulin-run*"
REPORT_NAME = "tarpaulin-run.json"


def find_reports(directory: Path, pattern: str = REPORT_PATTERN) -> list[Path]:
    """Files in ``directory`` matching the report pattern, sorted by name."""
    return sorted(p for p in Path(directory).glob(pattern) if p.is_file())


def archive_report(
    directory: Path,
    destination: Path,
    pattern: str = REPORT_PATTERN,
) -> Path:
    """Move the single report in ``directory`` to ``destination/tarpaulin-run.json``.

    Raises ReportNotFoundError when nothing matches and AmbiguousReportError
    when several files match; nothing is moved in either case.
    """
    matches = find_reports(directory, pattern)
    if not matches:
        raise ReportNotFoundError(f"No file matching {pattern} in {directory}")
    if len(matches) > 1:
        raise AmbiguousReportError(matches)
    
    target = Path(destination) / REPORT_NAME
    shutil.move(str(matches[0]), str(target))
    logger.debug("Archived %s to %s", matches[0].name, target)
    return target
