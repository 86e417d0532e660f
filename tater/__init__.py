"""Tater - batch coverage runner for Rust repositories."""

__version__ = "0.1.0"
