"""Results directory layout and batch status files."""

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..runner import BatchSummary, RepoOutcome

logger = logging.getLogger(__name__)


class ResultsStore:
    """Owns everything tater writes under the output root.

    Layout::

        <root>/projects/<name>/     working clones, removed after each run
        <root>/results/<name>/      <name>.log and tarpaulin-run.json
        <root>/pass, <root>/fail    one project name per line
        <root>/progress             index of the next project when paused
        <root>/summary.json         outcome of every project in the batch
    """
    
    def __init__(self, root: Path | str):
        self.root = Path(root)
        self.results_path = self.root / "results"
        self.projects_path = self.root / "projects"
        self.pass_file = self.root / "pass"
        self.fail_file = self.root / "fail"
        self.progress_file = self.root / "progress"
        self.summary_file = self.root / "summary.json"
    
    def prepare(self) -> None:
        """Create the results and projects directories."""
        self.root.mkdir(parents=True, exist_ok=True)
        for path in (self.results_path, self.projects_path):
            if path.is_dir():
                logger.warning("%s directory already exists", path.name.capitalize())
            path.mkdir(exist_ok=True)
    
    def results_dir(self, name: str) -> Path:
        """Create and return the results directory for a project."""
        path = self.results_path / name
        path.mkdir(parents=True, exist_ok=True)
        return path
    
    def staging_log(self, name: str) -> Path:
        """Where the log is written while the tool runs."""
        return self.projects_path / f"{name}.log"
    
    def reset_status(self, start_index: int) -> None:
        """Truncate pass/fail lists unless resuming a paused batch."""
        self.root.mkdir(parents=True, exist_ok=True)
        if start_index == 0:
            for path in (self.pass_file, self.fail_file):
                path.write_text("")
    
    def record(self, outcome: "RepoOutcome") -> None:
        """Append the project name to the pass or fail list."""
        path = self.pass_file if outcome.success else self.fail_file
        with path.open("a") as f:
            f.write(f"{outcome.name}\n")
    
    def read_progress(self) -> int:
        """Index of the next project to process, 0 without a progress file."""
        if not self.progress_file.is_file():
            return 0
        line = self.progress_file.read_text().strip().splitlines()
        if not line:
            return 0
        try:
            index = int(line[0].strip())
        except ValueError:
            logger.warning("Invalid progress file contents: %s", line[0])
            return 0
        if index < 0:
            logger.warning("Invalid progress file contents: %s", line[0])
            return 0
        return index
    
    def write_progress(self, index: int) -> None:
        self.progress_file.write_text(str(index))
    
    def clear_progress(self) -> None:
        self.progress_file.unlink(missing_ok=True)
    
    def read_summary(self) -> dict | None:
        """The previous run's summary, or None if missing or unreadable."""
        if not self.summary_file.is_file():
            return None
        try:
            data = json.loads(self.summary_file.read_text())
        except (OSError, ValueError) as e:
            logger.warning("Unable to read %s: %s", self.summary_file, e)
            return None
        return data if isinstance(data, dict) else None
    
    def write_summary(self, summary: "BatchSummary") -> Path:
        """Write the batch summary as JSON."""
        data = {
            "started_at": summary.started_at,
            "completed_at": summary.completed_at,
            "interrupted": summary.interrupted,
            "resumed_from": summary.resumed_from,
            "total": summary.total,
            "passed": summary.passed,
            "failed": summary.failed,
            "outcomes": [asdict(o) for o in summary.outcomes],
        }
        self.summary_file.write_text(json.dumps(data, indent=2, default=str))
        return self.summary_file
