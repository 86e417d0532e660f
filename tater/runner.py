"""Sequential clone -> tarpaulin -> archive -> cleanup batch runner."""

import logging
import shutil
import time
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Iterable

from rich.console import Console
from rich.markup import escape

from .coverage.reports import archive_report
from .coverage.tarpaulin import TarpaulinOptions, run_hook, run_tarpaulin
from .errors import HookError, ReportError, TarpaulinError, TaterError
from .repos.models import RepoRef
from .repos.repo_manager import RepoManager
from .store.results import ResultsStore

logger = logging.getLogger(__name__)
console = Console()


class RepoStatus(str, Enum):
    """How processing a single repository ended."""

    PASSED = "passed"
    FAILED = "failed"
    CLONE_FAILED = "clone_failed"
    SETUP_FAILED = "setup_failed"
    TIMED_OUT = "timed_out"
    INTERRUPTED = "interrupted"
    ERROR = "error"


@dataclass
class RepoOutcome:
    """Result of processing one repository."""
    name: str
    url: str
    status: RepoStatus
    index: int | None = None
    returncode: int | None = None
    duration: float = 0.0
    report_archived: bool = False
    ci_source: str | None = None
    error: str | None = None
    report_error: str | None = None

    @property
    def success(self) -> bool:
        return self.status == RepoStatus.PASSED

    @classmethod
    def from_dict(cls, data: dict) -> "RepoOutcome":
        """Rebuild an outcome from its ``summary.json`` entry."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values["status"] = RepoStatus(values["status"])
        return cls(**values)


@dataclass
class BatchSummary:
    """Outcomes of a batch run."""
    total: int = 0
    outcomes: list[RepoOutcome] = field(default_factory=list)
    interrupted: bool = False
    resumed_from: int | None = None
    started_at: str | None = None
    completed_at: str | None = None

    @property
    def passed(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return len(self.outcomes) - self.passed


class BatchRunner:
    """Runs cargo tarpaulin over a list of repositories, one at a time.

    Each repository gets ``results/<name>`` created up front, is cloned into
    ``projects/<name>``, has tarpaulin run inside the clone with its combined
    output captured to ``<name>.log``, and has its log and JSON report moved
    into the results directory. The clone is always removed afterwards.
    A failing repository never stops the batch.
    """

    def __init__(
        self,
        store: ResultsStore,
        options: TarpaulinOptions | None = None,
        repo_manager: RepoManager | None = None,
        hook_timeout: float | None = None,
    ):
        self.store = store
        self.options = options or TarpaulinOptions()
        self.repo_manager = repo_manager or RepoManager(store.projects_path)
        self.hook_timeout = hook_timeout

    def run(self, refs: Iterable[RepoRef], resume: bool = False) -> BatchSummary:
        """Process every repository in order."""
        refs = list(refs)

        start_index = self.store.read_progress() if resume else 0
        if start_index > len(refs):
            logger.warning(
                "Progress index %d is past the end of %d projects, starting over",
                start_index, len(refs),
            )
            start_index = 0
        if start_index > 0:
            console.print(f"[blue]Resuming execution from {start_index}[/blue]")
        self.store.reset_status(start_index)

        summary = BatchSummary(total=len(refs), started_at=datetime.now().isoformat())
        if start_index > 0:
            self._restore_earlier_outcomes(summary, start_index)
        console.print(f"[bold]Processing {len(refs)} projects[/bold]")

        for index in range(start_index, len(refs)):
            ref = refs[index]
            try:
                outcome = self.process(ref, index, len(refs))
            except KeyboardInterrupt:
                console.print("[yellow]Pausing execution[/yellow]")
                self.store.write_progress(index)
                summary.interrupted = True
                self._finish(summary, RepoOutcome(
                    name=ref.name,
                    url=ref.url,
                    status=RepoStatus.INTERRUPTED,
                    index=index,
                    error="Interrupted",
                ))
                break
            except (TaterError, OSError, ValueError, TypeError) as e:
                logger.error("Unexpected failure processing %s: %s", ref.name, e)
                outcome = RepoOutcome(
                    name=ref.name,
                    url=ref.url,
                    status=RepoStatus.ERROR,
                    index=index,
                    error=str(e),
                )
            self._finish(summary, outcome)
        else:
            self.store.clear_progress()

        summary.completed_at = datetime.now().isoformat()
        self.store.write_summary(summary)

        if summary.failed:
            logger.error(
                "Tarpaulin failed on %d/%d projects",
                summary.failed, len(summary.outcomes),
            )
        return summary

    def _finish(self, summary: BatchSummary, outcome: RepoOutcome) -> None:
        summary.outcomes.append(outcome)
        self.store.record(outcome)
        if outcome.success:
            console.print(f"  [green]✓[/green] {outcome.name}")
        else:
            detail = outcome.error or outcome.status.value
            console.print(f"  [red]✗[/red] {outcome.name}: {escape(detail)}")

    def _restore_earlier_outcomes(self, summary: BatchSummary, start_index: int) -> None:
        """Carry over outcomes from the paused run that precede ``start_index``."""
        summary.resumed_from = start_index
        previous = self.store.read_summary()
        if not previous:
            return
        summary.started_at = previous.get("started_at") or summary.started_at
        for entry in previous.get("outcomes") or []:
            try:
                outcome = RepoOutcome.from_dict(entry)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping unreadable summary entry %r: %s", entry, e)
                continue
            if outcome.index is not None and outcome.index < start_index:
                summary.outcomes.append(outcome)

    def process(self, ref: RepoRef, index: int = 0, total: int = 1) -> RepoOutcome:
        """Clone, run, archive and clean up a single repository."""
        name = ref.name
        results_dir = self.store.results_dir(name)

        console.print(f"\n[bold]{name}[/bold] {index + 1}/{total}")
        console.print(f"Cloning {name} from {ref.url}")
        console.print(f"Saving results to {results_dir}")

        start = time.monotonic()
        try:
            cloned = self.repo_manager.clone_repo(ref)
            if not cloned.success:
                outcome = RepoOutcome(
                    name=name,
                    url=ref.url,
                    status=RepoStatus.CLONE_FAILED,
                    error=cloned.error,
                )
            else:
                outcome = self._run_in_clone(ref, cloned.local_path, results_dir)
            outcome.index = index
            outcome.duration = time.monotonic() - start
            return outcome
        finally:
            self._cleanup(ref)

    def _run_in_clone(self, ref: RepoRef, project: Path, results_dir: Path) -> RepoOutcome:
        name = ref.name
        outcome = RepoOutcome(name=name, url=ref.url, status=RepoStatus.ERROR)

        if ref.setup:
            try:
                run_hook(ref.setup, project, self.hook_timeout)
            except HookError as e:
                logger.error("setup failed for %s: %s", name, e)
                outcome.status = RepoStatus.SETUP_FAILED
                outcome.error = str(e)
                return outcome

        log_path = self.store.staging_log(name)
        try:
            run = run_tarpaulin(self.options, ref, project, log_path)
        except TarpaulinError as e:
            outcome.error = str(e)
            run = None
        finally:
            if log_path.exists():
                shutil.move(str(log_path), str(results_dir / f"{name}.log"))

        if ref.teardown:
            try:
                run_hook(ref.teardown, project, self.hook_timeout)
            except HookError as e:
                logger.warning("teardown failed for %s: %s", name, e)

        try:
            archive_report(run.cwd if run and run.cwd else project, results_dir)
            outcome.report_archived = True
        except ReportError as e:
            logger.warning("%s: %s", name, e)
            outcome.report_error = str(e)

        if run is None:
            return outcome
        outcome.returncode = run.returncode
        outcome.ci_source = run.ci_source
        if run.timed_out:
            outcome.status = RepoStatus.TIMED_OUT
            outcome.error = f"Killed after {self.options.timeout}s"
        elif run.success:
            outcome.status = RepoStatus.PASSED
        else:
            outcome.status = RepoStatus.FAILED
            outcome.error = f"Tarpaulin exited with {run.returncode}"
        return outcome

    def _cleanup(self, ref: RepoRef) -> None:
        try:
            self.repo_manager.cleanup_repo(ref)
        except OSError as e:
            logger.error("Unable to remove clone of %s: %s", ref.name, e)
