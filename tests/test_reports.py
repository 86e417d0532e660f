"""Tests for archiving the tarpaulin report."""

import pytest

from tater.coverage.reports import archive_report, find_reports
from tater.errors import AmbiguousReportError, ReportNotFoundError


def test_single_report_is_renamed(tmp_path):
    project = tmp_path / "proj"
    results = tmp_path / "results"
    project.mkdir()
    results.mkdir()
    (project / "tarpaulin-run-2024-01-01.json").write_text('{"files": []}')

    target = archive_report(project, results)

    assert target == results / "tarpaulin-run.json"
    assert target.read_text() == '{"files": []}'
    assert find_reports(project) == []


def test_existing_report_is_overwritten(tmp_path):
    (tmp_path / "tarpaulin-run-new.json").write_text("new")
    results = tmp_path / "results"
    results.mkdir()
    (results / "tarpaulin-run.json").write_text("old")

    archive_report(tmp_path, results)

    assert (results / "tarpaulin-run.json").read_text() == "new"


def test_no_report(tmp_path):
    with pytest.raises(ReportNotFoundError):
        archive_report(tmp_path, tmp_path / "results")


def test_multiple_reports_move_nothing(tmp_path):
    results = tmp_path / "results"
    results.mkdir()
    project = tmp_path / "proj"
    project.mkdir()
    (project / "tarpaulin-run-1.json").write_text("1")
    (project / "tarpaulin-run-2.json").write_text("2")

    with pytest.raises(AmbiguousReportError) as exc:
        archive_report(project, results)

    assert len(exc.value.matches) == 2
    assert len(find_reports(project)) == 2
    assert not (results / "tarpaulin-run.json").exists()


def test_directories_are_ignored(tmp_path):
    (tmp_path / "tarpaulin-run-dir").mkdir()
    assert find_reports(tmp_path) == []
