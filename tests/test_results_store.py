"""Tests for the ResultsStore layout and status files."""

import json

from tater.runner import BatchSummary, RepoOutcome, RepoStatus
from tater.store.results import ResultsStore


def test_prepare_creates_layout(tmp_path):
    store = ResultsStore(tmp_path / "out")
    store.prepare()
    assert (tmp_path / "out" / "results").is_dir()
    assert (tmp_path / "out" / "projects").is_dir()
    # Running again is fine
    store.prepare()


def test_results_dir_is_idempotent(tmp_path):
    store = ResultsStore(tmp_path)
    first = store.results_dir("crate")
    second = store.results_dir("crate")
    assert first == second == tmp_path / "results" / "crate"
    assert first.is_dir()


def test_record_pass_and_fail(tmp_path):
    store = ResultsStore(tmp_path)
    store.reset_status(0)
    store.record(RepoOutcome(name="good", url="u", status=RepoStatus.PASSED))
    store.record(RepoOutcome(name="bad", url="u", status=RepoStatus.CLONE_FAILED))

    assert store.pass_file.read_text() == "good\n"
    assert store.fail_file.read_text() == "bad\n"


def test_reset_status_keeps_lists_when_resuming(tmp_path):
    store = ResultsStore(tmp_path)
    store.pass_file.write_text("earlier\n")
    store.reset_status(3)
    assert store.pass_file.read_text() == "earlier\n"
    store.reset_status(0)
    assert store.pass_file.read_text() == ""


def test_progress_roundtrip(tmp_path):
    store = ResultsStore(tmp_path)
    assert store.read_progress() == 0
    store.write_progress(4)
    assert store.read_progress() == 4
    store.clear_progress()
    assert not store.progress_file.exists()
    store.clear_progress()


def test_invalid_progress_starts_over(tmp_path):
    store = ResultsStore(tmp_path)
    store.progress_file.write_text("not a number")
    assert store.read_progress() == 0
    store.progress_file.write_text("-2")
    assert store.read_progress() == 0


def test_write_summary(tmp_path):
    store = ResultsStore(tmp_path)
    summary = BatchSummary(
        total=2,
        outcomes=[
            RepoOutcome(name="a", url="ua", status=RepoStatus.PASSED, returncode=0),
            RepoOutcome(name="b", url="ub", status=RepoStatus.FAILED, returncode=101),
        ],
    )
    data = json.loads(store.write_summary(summary).read_text())

    assert data["total"] == 2
    assert data["passed"] == 1
    assert data["failed"] == 1
    assert data["outcomes"][1]["status"] == "failed"
    assert data["outcomes"][1]["returncode"] == 101
