"""Shared test fixtures."""

import stat

import pytest

from tater.coverage.tarpaulin import TarpaulinOptions
from tater.repos.repo_manager import RepoManager
from tater.runner import BatchRunner
from tater.store.results import ResultsStore

# Stands in for `git clone [opts] URL DEST`. URLs containing "missing" fail.
FAKE_GIT = """#!/bin/sh
url=""
last=""
for arg; do url=$last; last=$arg; done
case "$url" in
    *missing*) echo "fatal: repository not found" >&2; exit 128;;
esac
mkdir -p "$last/.git"
echo "$*" > "$last/clone-args"
"""

# Stands in for `cargo [+toolchain] tarpaulin ...`. Behaviour depends on the
# project directory name.
FAKE_CARGO = """#!/bin/sh
here=$(basename "$(pwd -P)")
echo "cargo $*"
echo "RUST_LOG=$RUST_LOG"
echo "EXTRA=$EXTRA"
echo "compiling $here" >&2
case "$here" in
    *broken*) echo "error: could not compile" >&2; exit 101;;
    *slow*) sleep 5;;
    *noreport*) exit 0;;
    *tworeports*) echo '{}' > tarpaulin-run-2.json;;
esac
echo '{"files": []}' > tarpaulin-run-1.json
"""


def _write_script(path, content):
    path.write_text(content)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def bin_dir(tmp_path):
    path = tmp_path / "bin"
    path.mkdir()
    return path


@pytest.fixture
def fake_git(bin_dir):
    """Path to a fake git executable."""
    return _write_script(bin_dir / "git", FAKE_GIT)


@pytest.fixture
def fake_cargo(bin_dir):
    """Path to a fake cargo executable."""
    return _write_script(bin_dir / "cargo", FAKE_CARGO)


@pytest.fixture
def store(tmp_path):
    store = ResultsStore(tmp_path / "output")
    store.prepare()
    return store


@pytest.fixture
def options(fake_cargo):
    return TarpaulinOptions(cargo=str(fake_cargo))


@pytest.fixture
def runner(store, options, fake_git):
    """A BatchRunner wired to the fake git and cargo."""
    manager = RepoManager(store.projects_path, git=str(fake_git))
    return BatchRunner(store=store, options=options, repo_manager=manager)
