"""Execution OS: deep work, scoring, and strategic front health."""

__version__ = "0.3.0"
