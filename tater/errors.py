"""Exceptions raised by tater."""


class TaterError(Exception):
    """Base class for all tater errors."""


class ConfigError(TaterError):
    """Invalid or missing configuration."""


class InputError(TaterError):
    """The list of repositories could not be read."""


class CloneError(TaterError):
    """A repository could not be cloned."""


class HookError(TaterError):
    """A setup or teardown command failed."""


class TarpaulinError(TaterError):
    """cargo tarpaulin could not be launched."""


class ReportError(TaterError):
    """The coverage report could not be archived."""


class ReportNotFoundError(ReportError):
    """No file matched the report pattern."""


class AmbiguousReportError(ReportError):
    """More than one file matched the report pattern."""

    def __init__(self, matches: list):
        self.matches = matches
        names = ", ".join(p.name for p in matches)
        super().__init__(f"Expected one coverage report, found {len(matches)}: {names}")
