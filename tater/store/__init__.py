"""Results layout and batch status files."""

from .results import ResultsStore

__all__ = ["ResultsStore"]
